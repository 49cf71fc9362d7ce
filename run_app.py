"""
Entry point for running from a source checkout.
"""

from lexhtml.main import main

if __name__ == "__main__":
    main()
