from certdesk.app import create_app, db

import click
from flask.cli import FlaskGroup
from flask_migrate import Migrate

from certdesk.errors import CertdeskError
from certdesk.extensions import clients
from certdesk.services import submissions
from certdesk.services.fulfillment import get_orchestrator
from certdesk.services.notifiers import build_email_notifier, build_sms_notifier
from certdesk.shared.channels import Channel
from certdesk.shared.schema import ensure_submission_schema


migrate = Migrate()


def create_certdesk_app():
    app = create_app()
    migrate.init_app(app, db)
    return app


cli = FlaskGroup(create_app=create_certdesk_app)


@cli.command("init_schema")
def init_schema():
    """Create or extend the submissions table."""
    changes = ensure_submission_schema(db.engine)
    click.echo(", ".join(changes) if changes else "Schema up to date")


@cli.command("fulfill")
@click.option("--id", "submission_id", required=True, type=int)
@click.option(
    "--channel",
    type=click.Choice([c.value for c in Channel if c is not Channel.NONE]),
    default=None,
    help="Force a delivery channel instead of the default precedence.",
)
@click.option("--regenerate", is_flag=True, help="Render a fresh certificate first.")
def fulfill(submission_id: int, channel: str | None, regenerate: bool):
    """Generate and deliver the certificate for one submission."""
    try:
        submission = submissions.get_by_id(submission_id)
        result = get_orchestrator().fulfill(
            submission,
            channel=Channel(channel) if channel else None,
            force_regenerate=regenerate,
        )
    except CertdeskError as exc:
        click.echo(str(exc), err=True)
        raise SystemExit(1)
    click.echo(
        f"submission={result.submission_id} channel={result.channel.value} "
        f"sent={result.sent} key={result.artifact_key}"
    )
    if result.error:
        click.echo(str(result.error), err=True)
        raise SystemExit(1)


@cli.command("regenerate")
@click.option("--id", "submission_id", required=True, type=int)
def regenerate(submission_id: int):
    """Render and store a fresh certificate without sending it."""
    try:
        submission = submissions.get_by_id(submission_id)
        artifact = get_orchestrator().ensure_artifact(submission, force=True)
    except CertdeskError as exc:
        click.echo(str(exc), err=True)
        raise SystemExit(1)
    click.echo(artifact.key)


@cli.command("test_mail")
@click.option("--to", "recipient", required=True)
def test_mail(recipient: str):
    """Send a plain test message through the configured SMTP server."""
    result = clients().get("email_notifier", build_email_notifier).send_test(recipient)
    click.echo(f"ok={result['ok']} detail={result['detail']}")


@cli.command("test_sms")
@click.option("--to", "phone", required=True)
def test_sms(phone: str):
    """Send a test text message through Twilio."""
    try:
        sid = clients().get("sms_notifier", build_sms_notifier).send_test(phone)
    except CertdeskError as exc:
        click.echo(str(exc), err=True)
        raise SystemExit(1)
    click.echo(sid)


if __name__ == "__main__":
    cli()
