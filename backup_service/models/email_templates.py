# models/email_templates.py

"""
Operator notification templates for backup runs.
Filled with str.format; the shared stylesheet is passed in as {styles}.
"""

from html import escape
from typing import List


BASE_STYLES = """
    body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; }
    .container { max-width: 600px; margin: 0 auto; padding: 20px; }
    .header { background: ACCENT; color: white; padding: 20px; border-radius: 8px 8px 0 0; }
    .content { background: #f9fafb; padding: 20px; border: 1px solid #e5e7eb; }
    .footer { background: #f3f4f6; padding: 15px; border-radius: 0 0 8px 8px; text-align: center; font-size: 12px; color: #6b7280; }
    .detail { margin: 10px 0; padding: 10px; background: white; border-radius: 4px; border-left: 4px solid ACCENT; }
    .label { font-weight: 600; color: #374151; }
    .box { padding: 15px; border-radius: 4px; margin: 15px 0; }
    .success-box { background: #f0fdf4; border: 1px solid #bbf7d0; }
    .warning-box { background: #fffbeb; border: 1px solid #fde68a; }
    .error-box { background: #fef2f2; border: 1px solid #fecaca; }
    .btn { display: inline-block; background: #2563eb; color: white; padding: 10px 20px; text-decoration: none; border-radius: 6px; margin-top: 15px; }
    .stats { display: flex; gap: 15px; flex-wrap: wrap; margin: 15px 0; }
    .stat { background: white; padding: 12px; border-radius: 6px; border: 1px solid #e5e7eb; flex: 1; min-width: 120px; text-align: center; }
    .stat-value { font-size: 24px; font-weight: 700; color: ACCENT; }
    .stat-label { font-size: 12px; color: #6b7280; }
"""

SUCCESS_ACCENT = "#16a34a"
PARTIAL_ACCENT = "#d97706"
FAILURE_ACCENT = "#dc2626"


SUCCESS_SUBJECT_TEMPLATE = "✅ CollabHunts {job_label} Backup Successful"
PARTIAL_SUBJECT_TEMPLATE = "⚠️ CollabHunts {job_label} Backup Completed With Errors"
FAILURE_SUBJECT_TEMPLATE = "⚠️ CollabHunts {job_label} Backup Failed"


"""
Success (and partial) body: headline stats, run details, object location.
{warnings} is empty for a clean run.
"""
SUCCESS_EMAIL_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
  <style>{styles}</style>
</head>
<body>
  <div class="container">
    <div class="header">
      <h1 style="margin: 0;">{headline}</h1>
    </div>
    <div class="content">
      <p>Your {job_label_lower} backup has completed.</p>

      <div class="stats">
{stats}
      </div>

      <div class="detail"><span class="label">Backup Type:</span> {backup_type}</div>
      <div class="detail"><span class="label">Timestamp:</span> {timestamp}</div>
      <div class="detail"><span class="label">Execution Time:</span> {duration_secs} seconds</div>
      <div class="detail"><span class="label">File:</span> {file_name}</div>

      <div class="box success-box">
        <span class="label">S3 Location:</span><br/>
        <code style="word-break: break-all;">{destination_url}</code>
      </div>
{warnings}
      <a href="{history_url}" class="btn">View Backup History</a>
    </div>
    <div class="footer">
      <p>This is an automated message from CollabHunts Backup System</p>
    </div>
  </div>
</body>
</html>
"""


FAILURE_EMAIL_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
  <style>{styles}</style>
</head>
<body>
  <div class="container">
    <div class="header">
      <h1 style="margin: 0;">⚠️ Backup Failed</h1>
    </div>
    <div class="content">
      <p>A {job_label_lower} backup has failed and requires your attention.</p>

      <div class="detail"><span class="label">Backup Type:</span> {backup_type}</div>
      <div class="detail"><span class="label">Timestamp:</span> {timestamp}</div>
      <div class="detail"><span class="label">Execution Time:</span> {duration_secs} seconds</div>

      <div class="box error-box">
        <span class="label">Error Message:</span><br/>
        <code>{error_message}</code>
      </div>

      <p>Please review the backup configuration and try again.</p>

      <a href="{history_url}" class="btn">View Backup History</a>
    </div>
    <div class="footer">
      <p>This is an automated message from CollabHunts Backup System</p>
    </div>
  </div>
</body>
</html>
"""


STAT_TEMPLATE = """        <div class="stat">
          <div class="stat-value">{value}</div>
          <div class="stat-label">{label}</div>
        </div>"""

WARNINGS_TEMPLATE = """
      <div class="box warning-box">
        <span class="label">{count} item(s) could not be backed up:</span>
        <ul>
{items}
        </ul>
      </div>
"""


def styles_for(accent: str) -> str:
    return BASE_STYLES.replace("ACCENT", accent)


def build_stats(stats: List[tuple]) -> str:
    return "\n".join(
        STAT_TEMPLATE.format(value=escape(str(value)), label=escape(label))
        for label, value in stats
    )


def build_warnings(errors: List[str], limit: int = 20) -> str:
    """
    Warning block listing unit-level errors, capped at `limit` lines
    """
    if not errors:
        return ""
    shown = [f"          <li><code>{escape(e)}</code></li>" for e in errors[:limit]]
    if len(errors) > limit:
        shown.append(f"          <li>… and {len(errors) - limit} more</li>")
    return WARNINGS_TEMPLATE.format(count=len(errors), items="\n".join(shown))
