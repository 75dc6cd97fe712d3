"""Allows running: python -m portable_stack"""

from portable_stack.main import main

if __name__ == "__main__":
    main()
