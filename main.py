"""
stacklens - explore sampled call stacks with focus and merge transforms.

Usage
-----
Print a call tree:
    python main.py tree profile.json --implementation js

Apply a transform stack and print the inverted tree:
    python main.py tree profile.json --transforms f-combined-0w2 --inverted

Decode a transform token:
    python main.py transforms "f-combined-0w2~mcn-js-3" --profile profile.json
"""

import sys

from stacklens.cli.entry_points import main


if __name__ == "__main__":
    sys.exit(main())
