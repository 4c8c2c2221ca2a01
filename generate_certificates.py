import argparse
import json
import logging
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

from batch import CancelToken, generate_bulk_certificates, recommended_batch_size
from certificate import compose_certificate, single_certificate_filename
from config import LOG_LEVEL
from errors import CancellationError, ValidationError
from models import CanvasSize, EventInfo, OrgInfo, Progress, PxBox, TemplateSpec
from participants import load_participants_csv


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Generate participant certificates over a backdrop image and pack them into a ZIP."
    )
    parser.add_argument("--participants", required=True, help="CSV with name/id (and optional email) columns.")
    parser.add_argument(
        "--event-json",
        required=True,
        help='Path to JSON with the event: {"id", "title", "date", "location", "description"}.',
    )
    parser.add_argument("--org-name", required=True, help="Organisation name printed in the footer.")
    parser.add_argument("--backdrop", help="Backdrop image (PNG/JPEG) or single-page PDF.")
    parser.add_argument(
        "--name-box",
        required=True,
        help="Name box on the placement canvas as x,y,width,height in pixels.",
    )
    parser.add_argument(
        "--canvas",
        required=True,
        help="Placement canvas size as WIDTHxHEIGHT in pixels, e.g. 800x566.",
    )
    parser.add_argument("--font-family", default="helvetica", help="CSS font family for the name.")
    parser.add_argument("--font-path", help="Optional TTF font to embed for the name.")
    parser.add_argument("--font-size", type=float, help="Preview font size; caps the fitted size.")
    parser.add_argument("--color", default="#000000", help="Name colour (hex).")
    parser.add_argument("--align", default="center", choices=["left", "center", "right"])
    parser.add_argument(
        "--batch-size",
        type=int,
        help="Certificates composed concurrently per chunk (default: recommended for the list size).",
    )
    parser.add_argument(
        "--single",
        metavar="PARTICIPANT_ID",
        help="Generate one PDF for this participant instead of a ZIP.",
    )
    parser.add_argument(
        "--output",
        required=True,
        help="Output directory. The ZIP (or single PDF) is written here.",
    )
    return parser.parse_args()


def _parse_box(value: str) -> PxBox:
    parts = [p.strip() for p in value.split(",")]
    if len(parts) != 4:
        raise ValueError(f"--name-box expects x,y,width,height, got {value!r}.")
    x, y, w, h = (float(p) for p in parts)
    return PxBox(x=x, y=y, width=w, height=h)


def _parse_canvas(value: str) -> CanvasSize:
    parts = value.lower().split("x")
    if len(parts) != 2:
        raise ValueError(f"--canvas expects WIDTHxHEIGHT, got {value!r}.")
    return CanvasSize(width_px=float(parts[0]), height_px=float(parts[1]))


def build_template(args: argparse.Namespace) -> TemplateSpec:
    return TemplateSpec(
        backdrop_image=Path(args.backdrop).read_bytes() if args.backdrop else None,
        name_box_px=_parse_box(args.name_box),
        canvas_size=_parse_canvas(args.canvas),
        font_family=args.font_family,
        font_data=Path(args.font_path).read_bytes() if args.font_path else None,
        font_size=args.font_size,
        text_color=args.color,
        text_align=args.align,
    )


def print_progress(progress: Progress) -> None:
    print(
        f"  [{progress.completed}/{progress.total}] {progress.percentage:3d}% "
        f"{progress.current_participant or ''}"
    )


def main() -> None:
    logging.basicConfig(level=LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")
    args = parse_args()

    imported = load_participants_csv(Path(args.participants))
    for error in imported.errors:
        print(f"[WARN] {error}")
    event = EventInfo(**json.loads(Path(args.event_json).read_text(encoding="utf-8")))
    org = OrgInfo(name=args.org_name)
    template = build_template(args)
    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)

    if args.single:
        matches = [p for p in imported.participants if p.id == args.single]
        if not matches:
            raise ValueError(f"Participant id {args.single!r} not found in {args.participants}.")
        participant = matches[0]
        output_path = output_dir / single_certificate_filename(participant.name)
        output_path.write_bytes(compose_certificate(participant, event, org, template))
        print(f"Wrote: {output_path}")
        return

    participants = imported.participants
    batch_size = args.batch_size or recommended_batch_size(len(participants))
    print(f"Generating {len(participants)} certificates (batch size {batch_size})...")
    token = CancelToken()
    try:
        archive = generate_bulk_certificates(
            participants,
            event,
            org,
            template,
            batch_size=batch_size,
            on_progress=print_progress,
            cancel_token=token,
        )
    except ValidationError as exc:
        print("[FAIL] Participant list is invalid:")
        for error in exc.errors:
            print(f"  - {error}")
        raise SystemExit(1) from None
    except (CancellationError, KeyboardInterrupt):
        token.cancel()
        print("[WARN] Generation cancelled.")
        raise SystemExit(130) from None

    zip_path = output_dir / archive.filename
    zip_path.write_bytes(archive.data)
    print(f"Created ZIP archive: {zip_path}")


if __name__ == "__main__":
    main()
