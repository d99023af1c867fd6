"""Human readable byte sizes and transfer speeds."""

KB = 1024
MB = KB * 1024
GB = MB * 1024


def format_size(num_bytes: float) -> str:
    if num_bytes < KB:
        return f"{num_bytes:.0f} B"
    if num_bytes < MB:
        return f"{num_bytes / KB:.1f} KB"
    if num_bytes < GB:
        return f"{num_bytes / MB:.1f} MB"
    return f"{num_bytes / GB:.1f} GB"


def format_speed(bytes_per_second: float) -> str:
    if bytes_per_second < KB:
        return f"{bytes_per_second:.0f} B/s"
    if bytes_per_second < MB:
        return f"{bytes_per_second / KB:.1f} KB/s"
    return f"{bytes_per_second / MB:.1f} MB/s"
