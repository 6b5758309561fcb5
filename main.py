#!/usr/bin/env python3
"""MindfulTimer — entry point.

Run with:
    python main.py [minutes]
    python -m mindfultimer [minutes]
"""

from mindfultimer.__main__ import main


if __name__ == "__main__":
    main()
