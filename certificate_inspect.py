"""
List the text spans of a generated certificate with their page coordinates.

Useful for checking where the name landed relative to the template's box.
Coordinates are reported both top-left based (PyMuPDF) and bottom-left based
(reportlab/PDF), in points.
"""

import argparse
import json
from dataclasses import asdict, dataclass
from pathlib import Path

import fitz

POINTS_PER_MM = 72.0 / 25.4


@dataclass
class TextSpan:
    text: str
    font: str
    size: float
    color: int
    bbox_top_left: list[float]
    bbox_bottom_left: list[float]

    @property
    def bbox_mm(self) -> list[float]:
        """Top-left based bbox in millimetres, matching the placement UI."""
        return [v / POINTS_PER_MM for v in self.bbox_top_left]


def to_bottom_left_bbox(bbox: list[float], page_h: float) -> list[float]:
    x0, y0, x1, y1 = bbox
    return [x0, page_h - y1, x1, page_h - y0]


def extract_text_spans(pdf_bytes: bytes, page_index: int = 0, contains: str | None = None) -> list[TextSpan]:
    doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    try:
        if page_index < 0 or page_index >= len(doc):
            raise IndexError(f"Page {page_index} out of range. PDF has {len(doc)} page(s).")
        page = doc[page_index]
        page_h = float(page.rect.height)
        needle = contains.lower() if contains else None

        spans: list[TextSpan] = []
        for block in page.get_text("dict").get("blocks", []):
            if block.get("type") != 0:
                continue
            for line in block.get("lines", []):
                for span in line.get("spans", []):
                    text = (span.get("text") or "").strip()
                    if not text:
                        continue
                    if needle and needle not in text.lower():
                        continue
                    bbox = [float(v) for v in span.get("bbox", (0, 0, 0, 0))]
                    spans.append(
                        TextSpan(
                            text=text,
                            font=span.get("font", ""),
                            size=float(span.get("size", 0.0)),
                            color=int(span.get("color", 0)),
                            bbox_top_left=bbox,
                            bbox_bottom_left=to_bottom_left_bbox(bbox, page_h),
                        )
                    )
        return spans
    finally:
        doc.close()


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="List text spans of a generated certificate PDF.")
    parser.add_argument("pdf", help="Path to a certificate PDF.")
    parser.add_argument("--page", type=int, default=0, help="Zero-based page index.")
    parser.add_argument("--contains", help="Filter spans containing this text (case-insensitive).")
    parser.add_argument("--output-json", help="Optional JSON output path for extracted spans.")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    spans = extract_text_spans(Path(args.pdf).read_bytes(), args.page, args.contains)
    print(f"Matches: {len(spans)}")
    for idx, span in enumerate(spans, start=1):
        x0, y0, x1, y1 = span.bbox_mm
        print(
            f"{idx:03d} | '{span.text}' | font={span.font} size={span.size:.1f} | "
            f"bbox_mm=({x0:.1f},{y0:.1f},{x1:.1f},{y1:.1f})"
        )
    if args.output_json:
        out = Path(args.output_json)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(json.dumps([asdict(s) for s in spans], indent=2), encoding="utf-8")
        print(f"Wrote JSON: {out}")


if __name__ == "__main__":
    main()
