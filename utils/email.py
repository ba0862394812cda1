# utils/email.py
import requests

BREVO_URL = "https://api.brevo.com/v3/smtp/email"


def send_email(api_key: str, sender: str, to_email: str, subject: str, html: str):
     if not api_key:
          raise Exception("BREVO_API_KEY is not set")

     response = requests.post(
          BREVO_URL,
          headers={
               "api-key": api_key,
               "Content-Type": "application/json",
          },
          json={
               "sender": {"name": "AutoAssist", "email": sender},
               "to": [{"email": to_email}],
               "subject": subject,
               "htmlContent": html,
          },
          timeout=10,
     )
     if response.status_code not in (200, 201):
          raise Exception(f"Brevo error: {response.text}")
