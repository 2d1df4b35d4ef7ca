def format_duration(milliseconds: float) -> str:
    """Humanize a duration: "1h 2m 3s", "2m 3s" or "3s"."""
    seconds = int(milliseconds // 1000)
    minutes = seconds // 60
    hours = minutes // 60

    if hours > 0:
        return f"{hours}h {minutes % 60}m {seconds % 60}s"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"


def format_number(num: float) -> str:
    """Abbreviate large counts: 1500 -> "1.5K", 2_300_000 -> "2.3M"."""
    if num >= 1_000_000:
        return f"{num / 1_000_000:.1f}M"
    if num >= 1000:
        return f"{num / 1000:.1f}K"
    if isinstance(num, float) and num.is_integer():
        return str(int(num))
    return str(num)
