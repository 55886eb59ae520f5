"""
CLI interface for JourneyLens
"""

import sys
import json
import logging
import argparse

from . import config
from .analysis_engine import analyze_customer, group_by_customer, render_timeline, summarize_portfolio
from .layout import Viewport
from .models import CustomerStage
from .parser import EventParser, parse_timestamp, validate_format
from .report_generator import generate_report
from .timescale import ZoomTransform

# Configure logging
logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def _write_output(payload: dict, output_file: str = None):
    if output_file:
        with open(output_file, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
        logger.info(f"Output saved to {output_file}")
    else:
        print(json.dumps(payload, indent=2))


def analyze_file(
    filepath: str,
    output_file: str = None,
    last_contact_days: int = None,
    stage: str = "active",
    now: str = None,
    customer_id: str = None,
) -> dict:
    """
    Analyze an interaction export file.

    Args:
        filepath: Path to a .json or .csv export
        output_file: Optional output JSON file
        last_contact_days: Days since last contact (derived when omitted)
        stage: Customer lifecycle stage
        now: ISO evaluation time (default: current UTC time)
        customer_id: Customer to analyze when the export holds several

    Returns:
        Report dict, or {"customers": {id: report}, "portfolio": totals}
        for multi-customer exports
    """
    logger.info(f"Analyzing file: {filepath}")

    events = EventParser().parse_file(filepath)
    evaluated_at = parse_timestamp(now) if now else None
    customer_stage = CustomerStage.from_value(stage)

    groups = group_by_customer(events)
    if customer_id is not None:
        if customer_id not in groups:
            raise ValueError(f"Customer '{customer_id}' not found in {filepath}")
        groups = {customer_id: groups[customer_id]}

    reports = {}
    for cid, history in groups.items():
        analysis = analyze_customer(history, last_contact_days, customer_stage, evaluated_at)
        reports[cid] = generate_report(analysis, history)

    if len(reports) == 1:
        report = next(iter(reports.values()))
    elif not reports:
        report = generate_report(analyze_customer([], last_contact_days, customer_stage, evaluated_at), [])
    else:
        report = {"customers": reports, "portfolio": summarize_portfolio(groups, reports)}

    _write_output(report, output_file)
    return report


def timeline_file(
    filepath: str,
    output_file: str = None,
    width: float = None,
    height: float = None,
    zoom: float = 1.0,
    pan: float = 0.0,
    now: str = None,
) -> dict:
    """Lay out the timeline of an export file for one zoom state."""
    events = EventParser().parse_file(filepath)
    viewport = Viewport(
        width=width or config.DEFAULT_VIEWPORT_WIDTH,
        height=height or config.DEFAULT_VIEWPORT_HEIGHT,
    )
    layout = render_timeline(
        events,
        transform=ZoomTransform(zoom, pan),
        viewport=viewport,
        now=parse_timestamp(now) if now else None,
    )
    logger.info(
        f"Timeline: {len(layout.markers)} markers, {len(layout.clusters)} clusters, "
        f"{len(layout.segments)} segments"
    )

    payload = layout.to_dict()
    _write_output(payload, output_file)
    return payload


def main(argv=None):
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="JourneyLens - Customer Journey Intelligence"
    )

    parser.add_argument(
        "command",
        choices=["analyze", "timeline", "validate"],
        help="Command to run"
    )

    parser.add_argument(
        "filepath",
        help="Path to a .json or .csv interaction export"
    )

    parser.add_argument(
        "-o", "--output",
        dest="output_file",
        help="Output JSON file path"
    )

    parser.add_argument(
        "--last-contact-days",
        type=int,
        default=None,
        help="Days since last contact (default: derived from the latest event)"
    )

    parser.add_argument(
        "--stage",
        default="active",
        choices=[s.value for s in CustomerStage],
        help="Customer lifecycle stage"
    )

    parser.add_argument(
        "--customer",
        dest="customer_id",
        help="Analyze only this customer"
    )

    parser.add_argument(
        "--now",
        help="Evaluation time as ISO-8601 (default: current UTC time)"
    )

    parser.add_argument("--width", type=float, help="Viewport width in pixels")
    parser.add_argument("--height", type=float, help="Viewport height in pixels")
    parser.add_argument("--zoom", type=float, default=1.0, help="Zoom scale k")
    parser.add_argument("--pan", type=float, default=0.0, help="Pan offset x in pixels")

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose logging"
    )

    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.command == "validate":
        valid, msg = validate_format(args.filepath)
        print(f"Valid: {valid} - {msg}")
        sys.exit(0 if valid else 1)

    try:
        if args.command == "analyze":
            report = analyze_file(
                args.filepath,
                args.output_file,
                last_contact_days=args.last_contact_days,
                stage=args.stage,
                now=args.now,
                customer_id=args.customer_id,
            )
            summary = report.get("summary")
            if summary:
                logger.info(f"Health: {summary['health_score']}/100 ({summary['risk_level']})")
        else:
            timeline_file(
                args.filepath,
                args.output_file,
                width=args.width,
                height=args.height,
                zoom=args.zoom,
                pan=args.pan,
                now=args.now,
            )
    except Exception as e:
        logger.error(f"{args.command.title()} failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
