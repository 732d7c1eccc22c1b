"""
ANSI colour codes for the record report, CLI messages and console log lines
"""


class Colors:
    """Escape codes plus the few styles the quote review screens use"""
    RESET = "\033[0m"
    BOLD = "\033[1m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    GREY = "\033[90m"

    OUTCOME_COLORS = {
        "approved": GREEN,
        "declined": YELLOW,
        "error": RED,
    }

    @classmethod
    def colorize(cls, text: str, color: str) -> str:
        return f"{color}{text}{cls.RESET}"

    @classmethod
    def header(cls, text: str) -> str:
        return cls.colorize(text, cls.BOLD + cls.CYAN)

    @classmethod
    def warning(cls, text: str) -> str:
        return cls.colorize(text, cls.YELLOW)

    @classmethod
    def error(cls, text: str) -> str:
        return cls.colorize(text, cls.RED)

    @classmethod
    def success(cls, text: str) -> str:
        return cls.colorize(text, cls.GREEN)

    @classmethod
    def unknown(cls) -> str:
        """Placeholder shown for fields the extraction could not determine"""
        return cls.colorize("(unknown)", cls.GREY)

    @classmethod
    def get_outcome_color(cls, status: str) -> str:
        """Colour for a submission outcome; unrecognised statuses stay uncoloured"""
        return cls.OUTCOME_COLORS.get((status or "").lower(), "")
