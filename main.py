"""
Convenience entrypoint for the Vocab Coach live session.

Allows running `python main.py` in addition to `python -m vocab_coach`.
"""

from vocab_coach.cli import main


if __name__ == "__main__":
    main()
