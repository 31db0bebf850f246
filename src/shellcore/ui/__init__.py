from shellcore.ui.progress import ProgressIndicator, comma, should_sample
from shellcore.ui.terminal import TerminalProbe

__all__ = [
    "ProgressIndicator",
    "TerminalProbe",
    "comma",
    "should_sample",
]
