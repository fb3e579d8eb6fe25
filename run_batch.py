#!/usr/bin/env python3
"""
Main CLI entrypoint for Movie Shorts.

This is a convenience wrapper that imports and runs the batch controller.
"""

import sys

from movie_shorts.pipelines.run_batch import main

if __name__ == "__main__":
    sys.exit(main())
