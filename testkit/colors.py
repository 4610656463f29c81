from colorama import (
    Fore,
    Style,
)

RED = Fore.RED
GREEN = Fore.GREEN
YELLOW = Fore.YELLOW
MAGENTA = Fore.MAGENTA
RESET_COLOR = Style.RESET_ALL
