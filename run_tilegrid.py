#!/usr/bin/env python3
"""
tilegrid launcher script.

Run this from the project root to start the gallery:

    python run_tilegrid.py /path/to/images
    python run_tilegrid.py http://localhost:8000
"""

if __name__ == '__main__':
    from tilegrid.run_gui import main
    main()
