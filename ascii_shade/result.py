"""
Render result: the text grid plus the parameters that produced it.
"""

import html
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from PIL import Image

_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<title>{title}</title>
<style>
body {{ background: #1e1e1e; color: #d4d4d4; margin: 0; padding: 20px; }}
pre {{ font: 10px/1.0 Menlo, Monaco, 'Courier New', monospace; white-space: pre; margin: 0; }}
dl {{ font: 12px sans-serif; border-top: 1px solid #444; margin-top: 20px; padding-top: 12px; }}
</style>
</head>
<body>
<pre>{text}</pre>
<dl>{details}</dl>
</body>
</html>
"""


@dataclass
class TextArtResult:
    """
    One rendered text grid.

    Attributes:
        text: Rows joined with newlines
        source_image: Image the grid was sampled from
        metadata: Charset, sampling resolution, device and timings
    """
    text: str
    source_image: Optional[Image.Image] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def lines(self) -> List[str]:
        return self.text.split("\n") if self.text else []

    @property
    def width(self) -> int:
        return max((len(line) for line in self.lines), default=0)

    @property
    def height(self) -> int:
        return len(self.lines)

    def display(self, max_width: Optional[int] = None):
        """Print to the terminal, clipping rows to ``max_width`` columns if given."""
        for line in self.lines:
            print(line[:max_width] if max_width else line)

    def save(self, path: str):
        """Write plain text, or an HTML page when ``path`` ends in .html/.htm."""
        is_html = path.lower().endswith((".html", ".htm"))
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.to_html() if is_html else self.text)

    def to_html(self, title: str = "Text Art") -> str:
        details = "".join(
            f"<dt>{html.escape(str(key))}</dt><dd>{html.escape(str(value))}</dd>"
            for key, value in self.metadata.items()
        )
        return _PAGE.format(title=html.escape(title), text=html.escape(self.text), details=details)

    def glyph_usage(self) -> Counter:
        """How many cells each glyph filled."""
        return Counter(self.text.replace("\n", ""))

    def get_stats(self) -> Dict[str, Any]:
        usage = self.glyph_usage()
        return {
            "width": self.width,
            "height": self.height,
            "total_characters": sum(usage.values()),
            "unique_characters": len(usage),
            "most_common": usage.most_common(1)[0][0] if usage else None,
        }

    def __repr__(self) -> str:
        resolution = self.metadata.get("resolution", "?")
        return f"TextArtResult({self.width}x{self.height} cells, sampled at {resolution})"

    def __str__(self) -> str:
        return self.text


def create_result(text: str, source_image: Optional[Image.Image] = None, **metadata) -> TextArtResult:
    """Build a result stamped with ``generated_at``; None-valued metadata is dropped."""
    meta = {"generated_at": datetime.now().isoformat()}
    meta.update({key: value for key, value in metadata.items() if value is not None})
    return TextArtResult(text=text, source_image=source_image, metadata=meta)
