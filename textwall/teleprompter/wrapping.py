from __future__ import annotations


def wrap_text(text: str, line_width: int) -> list[str]:
    """Greedy word wrap to `line_width` columns.

    Explicit newlines start a new line, blank lines are dropped and words longer
    than a line are hard-split. Output depends only on (text, line_width).
    """

    if line_width < 1:
        raise ValueError("line_width must be at least 1")

    lines: list[str] = []
    for paragraph in text.splitlines():
        current = ""
        for word in paragraph.split():
            while len(word) > line_width:
                if current:
                    lines.append(current)
                    current = ""
                lines.append(word[:line_width])
                word = word[line_width:]
            if not word:
                continue
            if not current:
                current = word
            elif len(current) + 1 + len(word) <= line_width:
                current = f"{current} {word}"
            else:
                lines.append(current)
                current = word
        if current:
            lines.append(current)
    return lines


def estimate_words_per_line(text: str, line_width: int) -> float:
    lines = wrap_text(text, line_width)
    if not lines:
        return 0.0
    return len(text.split()) / len(lines)
