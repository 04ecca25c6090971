import sys

from runway_arrivals.sweep import main

if __name__ == "__main__":
    sys.exit(main())
