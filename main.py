#!/usr/bin/env python
"""
BAM filter pipeline: root-level launcher
"""

from bamfilter.main import main

if __name__ == "__main__":
    main()
