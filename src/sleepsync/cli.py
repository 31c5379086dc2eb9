"""CLI for the sleepsync sleep analytics core."""

import json
import logging

import click


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(verbose: bool) -> None:
    """sleepsync — sleep detection, baseline calibration and scoring."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.argument("file", type=click.Path(exists=True))
@click.option("--window", "-w", default=30, help="Samples per detection window.")
@click.option("--transitions", "-t", is_flag=True, help="Print every sleep/wake transition.")
def replay(file: str, window: int, transitions: bool) -> None:
    """Replay a JSONL sensor capture through the detector."""
    from sleepsync.analytics.detection import SleepDetector
    from sleepsync.replay import load_samples, replay_samples, summarize

    samples = load_samples(file)
    results = list(replay_samples(samples, SleepDetector(window_size=window)))

    if transitions:
        for prev, cur in zip(results, results[1:]):
            if prev.state.is_asleep != cur.state.is_asleep:
                label = "asleep" if cur.state.is_asleep else "awake"
                click.echo(f"  t={cur.state.timestamp:.1f} → {label}")

    click.echo(json.dumps(summarize(results), indent=2))


@main.command()
@click.argument("file", type=click.Path(exists=True))
@click.option("--user", "-u", default="local", help="User id for the session.")
@click.option("--output", "-o", default=None, help="Write the night report JSON to file.")
def night(file: str, user: str, output: str | None) -> None:
    """Record and score one night from a JSONL sensor capture."""
    from sleepsync.analytics.pipeline import run_session
    from sleepsync.replay import load_samples

    report = run_session(load_samples(file), user_id=user)
    session = report.session

    click.echo(f"\n{'=' * 60}")
    click.echo(f"  Night of {session.start_at:%Y-%m-%d}")
    click.echo(f"{'=' * 60}")
    click.echo(f"  Duration:   {session.duration_min or 0:.0f} min")
    if session.stages is not None:
        click.echo(f"  Stages:     light {session.stages.light:.0f} / "
                   f"deep {session.stages.deep:.0f} / rem {session.stages.rem:.0f} min")
    click.echo(f"  Latency:    {session.sleep_latency or 0:.0f} min")
    click.echo(f"  Awakenings: {session.awake_count or 0}")
    if report.score is not None:
        click.echo(f"  Score:      {report.score.total}/100 ({report.quality})")
        for f in report.score.factors:
            sign = "+" if f.impact == "positive" else "-"
            click.echo(f"    {sign} {f.name} ({f.value:.0f})")
    click.echo(f"{'=' * 60}")

    if output:
        with open(output, "w") as fh:
            fh.write(report.to_json())
        click.echo(f"\nReport written to {output}")


@main.command()
@click.argument("sessions_file", type=click.Path(exists=True))
@click.option("--chunks", "-c", "chunks_file", default=None, type=click.Path(exists=True),
              help="JSONL of raw samples (with session_id) for sensor calibration.")
@click.option("--user", "-u", default=None, help="Only calibrate this user's sessions.")
def calibrate(sessions_file: str, chunks_file: str | None, user: str | None) -> None:
    """Compute a baseline from a JSON list of completed sessions."""
    from sleepsync.analytics.baseline import BASELINE_DAYS, BaselineCalibrator
    from sleepsync.analytics.circadian import chronotype, circadian_phase
    from sleepsync.models import Session
    from sleepsync.replay import load_samples
    from sleepsync.storage import MemoryBaselineStore, MemoryChunkStore, MemorySessionStore

    with open(sessions_file) as fh:
        sessions = [Session.from_dict(d) for d in json.load(fh)]
    if user is not None:
        sessions = [s for s in sessions if s.user_id == user]
    if not sessions:
        raise click.ClickException("no sessions to calibrate from")

    chunks = MemoryChunkStore()
    if chunks_file:
        chunks.save_chunks(load_samples(chunks_file))

    user_id = user or sessions[0].user_id
    calibrator = BaselineCalibrator(MemorySessionStore(sessions), chunks, MemoryBaselineStore())
    progress = calibrator.collect(user_id)

    if not progress.is_complete:
        click.echo(f"Baseline incomplete: {progress.days_collected}/{BASELINE_DAYS} nights "
                   f"({progress.days_remaining} remaining).")
        return
    baseline = progress.baseline
    result = baseline.to_dict()
    result["chronotype"] = chronotype(baseline.average_bedtime, baseline.average_wake_time).value
    result["circadian_phase"] = circadian_phase(baseline.average_bedtime)
    click.echo(json.dumps(result, indent=2))


@main.command()
@click.argument("session_file", type=click.Path(exists=True))
@click.option("--baseline", "-b", "baseline_file", default=None, type=click.Path(exists=True),
              help="Baseline JSON to score against.")
def score(session_file: str, baseline_file: str | None) -> None:
    """Score a completed session (JSON object)."""
    from sleepsync.analytics.scoring import quality_label, score_session
    from sleepsync.errors import InvalidInput
    from sleepsync.models import Baseline, Session

    with open(session_file) as fh:
        session = Session.from_dict(json.load(fh))
    baseline = None
    if baseline_file:
        with open(baseline_file) as fh:
            baseline = Baseline.from_dict(json.load(fh))

    try:
        breakdown = score_session(session, baseline)
    except InvalidInput as e:
        raise click.ClickException(str(e))

    result = breakdown.to_dict()
    result["quality"] = quality_label(breakdown.total)
    click.echo(json.dumps(result, indent=2))


if __name__ == "__main__":
    main()
