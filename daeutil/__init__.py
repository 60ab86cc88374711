"""Linux networking helpers: prefix trie, config model, geodata, trace formatting, kernel and sysctl utilities."""

__version__ = "0.1.0"