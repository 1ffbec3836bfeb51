#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
play_youtube.py

Search YouTube and stream the result with mpv, straight from the terminal.
Supports:
- Direct search (positional query) or an interactive menu
- Watch history (--history) and a subscriptions feed (--feed)
- Downloads via yt-dlp (--download, --video)

Usage:
    python play_youtube.py lofi hip hop
    python play_youtube.py --history
    python play_youtube.py --download --video never gonna give you up
"""

import sys

from yt_chill.cli import main

if __name__ == "__main__":
    sys.exit(main())
