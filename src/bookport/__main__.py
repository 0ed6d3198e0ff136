"""Allow running bookport as ``python -m bookport``."""

from bookport.cli import main

if __name__ == "__main__":
    main()
