"""Operating system helpers."""


def raise_open_file_limit(maximum: int) -> None:
    """Raise the soft limit of open files towards maximum, capped by the hard limit.

    Raises OSError where the limit cannot be queried or changed.
    """
    try:
        import resource
    except ImportError:
        raise OSError("Not available for Windows") from None

    try:
        soft, hard = resource.getrlimit(resource.RLIMIT_NOFILE)
    except (OSError, ValueError) as exc:
        raise OSError(f"could not get current limit: {exc}") from exc

    def effective(value: int) -> float:
        return float("inf") if value == resource.RLIM_INFINITY else value

    if effective(soft) >= effective(hard) or effective(soft) >= maximum:
        return
    new_soft = maximum if effective(hard) > maximum else hard
    try:
        resource.setrlimit(resource.RLIMIT_NOFILE, (new_soft, hard))
    except ValueError as exc:
        raise OSError(str(exc)) from exc