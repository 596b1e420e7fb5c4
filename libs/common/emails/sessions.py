"""
Training-session email templates.
"""

import html
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import ensure_utc, local_zone
from libs.common.emails.core import send_email


async def send_booking_confirmation_email(
    to_email: str,
    client_name: str,
    session_title: str,
    start_time: datetime,
    end_time: datetime,
    trainer_name: str,
    description: Optional[str] = None,
) -> bool:
    """
    Confirm a newly booked training session to the client.
    Times are rendered in the gym's local timezone.
    """
    zone = local_zone()
    start_local = ensure_utc(start_time).astimezone(zone)
    end_local = ensure_utc(end_time).astimezone(zone)
    session_date = start_local.strftime("%d %B %Y")
    session_time = f"{start_local:%H:%M} - {end_local:%H:%M}"
    description_text = description or "No description provided."

    safe_name = html.escape(client_name)
    safe_title = html.escape(session_title)
    safe_description = html.escape(description_text)
    safe_trainer = html.escape(trainer_name)

    subject = f"Training session booked: {session_title}"
    body = f"""Hi {client_name},

Your training session has been booked. Here are the details:

Session: {session_title}
Description: {description_text}
Date: {session_date}
Time: {session_time}
Trainer: {trainer_name}

If you need to reschedule, please contact us.
"""

    html_body = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
        <h1 style="color: #333; text-align: center;">Training session booked</h1>
        <p>Hi <strong>{safe_name}</strong>,</p>
        <p>Your training session has been booked. Here are the details:</p>
        <div style="background-color: #f9f9f9; padding: 15px; border-radius: 5px; margin: 20px 0;">
            <h3 style="color: #555; margin-top: 0;">{safe_title}</h3>
            <p><strong>Description:</strong> {safe_description}</p>
            <p><strong>Date:</strong> {session_date}</p>
            <p><strong>Time:</strong> {session_time}</p>
            <p><strong>Trainer:</strong> {safe_trainer}</p>
        </div>
        <p style="color: #666;">If you need to reschedule, please contact us.</p>
    </div>
    """

    return await send_email(
        to_email=to_email,
        subject=subject,
        body=body,
        html_body=html_body,
    )
