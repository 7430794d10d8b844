def to_wire(text):
    if text is None:
        return None
    if isinstance(text, str):
        text = bytes(text, "utf-8")
    return bytes(text)


def to_normal_str(text):
    """
    Make sure we return a normal string, whatever was handed in.
    Bodies are bytes on the wire but we want text in the debug log.
    """
    if text is None:
        return text
    if not isinstance(text, str):
        text = bytes(text).decode("utf-8", errors="replace")
    text = text.replace("\r\n", "\n")
    return text
