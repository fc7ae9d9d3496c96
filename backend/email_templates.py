from html import escape
from typing import Callable, Dict, Tuple

SIGNATURE_TEXT = (
    "Regards,\n"
    "Skilins Team\n"
)
SIGNATURE_HTML = '<p style="margin-bottom: 0;">Regards,<br><strong>Skilins Team</strong></p>'


def _wrap_html(heading: str, body: str) -> str:
    return f"""
    <html>
      <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #1b1f24;">
        <div style="max-width: 560px; margin: 0 auto; padding: 24px; border: 1px solid #e6e6e6; border-radius: 12px;">
          <h2 style="margin-top: 0;">{heading}</h2>
          {body}
          <hr style="border: none; border-top: 1px solid #e6e6e6; margin: 24px 0;" />
          {SIGNATURE_HTML}
        </div>
      </body>
    </html>
    """


def _submission_rows(context: dict) -> str:
    return (
        "<ul>"
        f"<li>Competition: <strong>{escape(str(context.get('competition_name', '')))}</strong></li>"
        f"<li>Submission: {escape(str(context.get('title_submission', '')))}</li>"
        f"<li>Submission ID: {escape(str(context.get('submission_id', '')))}</li>"
        f"<li>Submitted on: {escape(str(context.get('submission_date', '')))}</li>"
        "</ul>"
    )


def build_submission_approved_email(context: dict) -> Tuple[str, str]:
    name = str(context.get("name", ""))
    text = (
        f"Hello {name},\n\n"
        f"Your submission \"{context.get('title_submission', '')}\" to {context.get('competition_name', '')} "
        "has been approved and is now part of the competition.\n\n"
        f"Submission ID: {context.get('submission_id', '')}\n"
        f"Submitted on: {context.get('submission_date', '')}\n"
        f"Judging period: {context.get('judging_dates', '')}\n"
        f"Winners announced: {context.get('announcement_date', '')}\n\n"
        "Good luck!\n\n"
        + SIGNATURE_TEXT
    )
    body = (
        f"<p>Hello {escape(name)},</p>"
        "<p>Your submission has been <strong>approved</strong> and is now part of the competition.</p>"
        + _submission_rows(context)
        + f"<p>Judging period: {escape(str(context.get('judging_dates', '')))}<br>"
        f"Winners announced: {escape(str(context.get('announcement_date', '')))}</p>"
        "<p>Good luck!</p>"
    )
    return text, _wrap_html("Submission approved", body)


def build_submission_rejected_email(context: dict) -> Tuple[str, str]:
    name = str(context.get("name", ""))
    reason = context.get("reason")
    text = (
        f"Hello {name},\n\n"
        f"Unfortunately your submission \"{context.get('title_submission', '')}\" to "
        f"{context.get('competition_name', '')} was not accepted.\n\n"
        f"Submission ID: {context.get('submission_id', '')}\n"
        f"Submitted on: {context.get('submission_date', '')}\n"
        + (f"Reason: {reason}\n" if reason else "")
        + "\n"
        + SIGNATURE_TEXT
    )
    body = (
        f"<p>Hello {escape(name)},</p>"
        "<p>Unfortunately your submission was <strong>not accepted</strong>.</p>"
        + _submission_rows(context)
        + (f"<p>Reason: {escape(str(reason))}</p>" if reason else "")
    )
    return text, _wrap_html("Submission rejected", body)


TEMPLATES: Dict[str, Callable[[dict], Tuple[str, str]]] = {
    "submission-approved": build_submission_approved_email,
    "submission-rejected": build_submission_rejected_email,
}


def render_template(template: str, context: dict) -> Tuple[str, str]:
    builder = TEMPLATES.get(template)
    if builder is None:
        raise KeyError(f"Unknown email template: {template}")
    return builder(context)
