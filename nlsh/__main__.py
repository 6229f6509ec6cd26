"""
This allows nlsh to be run as a module with `python -m nlsh`.
"""
from .main import main

if __name__ == "__main__":
    main()
