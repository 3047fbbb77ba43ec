# cli.py
"""
Flask CLI commands for the check-in service.

    flask --app app init-db
    flask --app app register-attendee ada@example.com "Ada Lovelace" --organization MOH
    flask --app app issue-credential <attendee-id> --png badge.png
    flask --app app event-status
    flask --app app scan --scanner-id gate-1            # payloads from stdin
    flask --app app scan --scanner-id gate-1 --camera 0 # webcam
"""

import sys

import click
from flask.cli import with_appcontext

from event_checkin.extensions import db

OUTCOME_COLORS = {
    'accepted': 'green',
    'already_recorded': 'yellow',
    'ignored': 'white',
}


@click.command("init-db")
@with_appcontext
def init_database():
    """Create the attendee and attendance tables."""
    try:
        db.create_all()
        click.echo("Database tables created.")
    except Exception as e:
        click.echo(f"Database initialization failed: {str(e)}", err=True)
        raise


@click.command("register-attendee")
@click.argument("email")
@click.argument("full_name")
@click.option("--organization", default=None, help="Attendee organization")
@click.option("--position", default=None, help="Attendee job title")
@with_appcontext
def register_attendee(email, full_name, organization, position):
    """Register an attendee so a credential can be issued for them."""
    from event_checkin.services.registration_service import RegistrationService

    result = RegistrationService.register_attendee(
        email, full_name, organization=organization, position=position
    )
    if not result['success']:
        raise click.ClickException(result['message'])

    click.echo(f"Registered {result['attendee']['full_name']} with ID {result['attendee']['id']}")


@click.command("issue-credential")
@click.argument("attendee_id")
@click.option("--png", "png_path", type=click.Path(dir_okay=False), default=None,
              help="Also write the QR code image to this file")
@with_appcontext
def issue_credential(attendee_id, png_path):
    """Print a fresh credential token for an attendee."""
    from event_checkin.services import get_qr_code_service

    service = get_qr_code_service()
    if png_path:
        result = service.save_for_attendee(attendee_id, png_path)
    else:
        result = service.generate_for_attendee(attendee_id)

    if not result['success']:
        raise click.ClickException(result['message'])

    if not result['signed']:
        click.secho("WARNING: legacy-json credentials are unsigned and can be forged.", fg='red', err=True)

    click.echo(result['token'])
    if png_path:
        click.echo(f"QR code written to {result['qr_path']}", err=True)


@click.command("event-status")
@with_appcontext
def event_status():
    """Show the current event day."""
    from event_checkin.services import get_calendar

    status = get_calendar().status()
    click.echo(f"{status['event_name']}: {status['start_date']} to {status['end_date']}")
    click.echo(f"Now {status['now']} - {status['label']}")


@click.command("scan")
@click.option("--scanner-id", required=True, help="Identity recorded with each check-in")
@click.option("--camera", "camera_index", type=int, default=None,
              help="Read QR codes from this webcam instead of stdin")
@with_appcontext
def scan(scanner_id, camera_index):
    """Run a scanner loop, one payload per line on stdin or from a webcam."""
    from event_checkin.services import get_scan_orchestrator
    from event_checkin.models.attendance import SCANNER_ID_MAX_LENGTH
    from event_checkin.services.capture import CameraCaptureDevice, StreamCaptureDevice

    scanner_id = scanner_id.strip()
    if not scanner_id or len(scanner_id) > SCANNER_ID_MAX_LENGTH:
        raise click.BadParameter(
            f"must be 1 to {SCANNER_ID_MAX_LENGTH} characters", param_hint="--scanner-id"
        )

    if camera_index is None:
        device = StreamCaptureDevice(click.get_text_stream('stdin'))
    else:
        device = CameraCaptureDevice(camera_index)

    def show(outcome):
        color = OUTCOME_COLORS.get(outcome.status, 'red')
        name = outcome.attendee['full_name'] if outcome.attendee else '-'
        click.secho(f"[{outcome.status}] {name}: {outcome.message}", fg=color)

    orchestrator = get_scan_orchestrator(device=device, on_outcome=show)

    try:
        orchestrator.run(scanner_id)
    except RuntimeError as e:
        raise click.ClickException(str(e))
    except KeyboardInterrupt:
        click.echo("Scanner stopped.", err=True)
        sys.exit(0)


def register_cli_commands(app):
    """
    Register all CLI commands with the Flask application.

    Args:
        app: Flask application instance
    """
    app.cli.add_command(init_database)
    app.cli.add_command(register_attendee)
    app.cli.add_command(issue_credential)
    app.cli.add_command(event_status)
    app.cli.add_command(scan)
