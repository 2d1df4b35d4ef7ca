from dataclasses import dataclass


@dataclass
class PageEnvironment:
    """
    What the tracker can observe about the page it instruments.

    Stands in for the browser's window/document: the host fills it once per
    page load and updates the screen size if the window changes.
    """

    user_agent: str = ""
    referrer: str = ""
    hostname: str = "localhost"
    screen_width: int = 1920
    screen_height: int = 1080

    @property
    def screen_resolution(self) -> str:
        return f"{self.screen_width}x{self.screen_height}"

    def resize(self, width: int, height: int) -> None:
        self.screen_width = width
        self.screen_height = height
