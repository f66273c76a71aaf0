import os
import logging

from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from google.auth.transport.requests import Request
from googleapiclient.discovery import build

from errors import CertificateWorkflowError

SCOPES = [
    'https://www.googleapis.com/auth/drive',
    'https://www.googleapis.com/auth/spreadsheets',
    'https://www.googleapis.com/auth/presentations',
]


class AuthenticationError(CertificateWorkflowError):
    pass


def get_google_credentials():
    """
    Get Google API credentials.

    A service account is used when ``GOOGLE_SERVICE_ACCOUNT_FILE`` is set.
    Otherwise the installed-app OAuth flow runs once and the token is cached
    at ``TOKEN_PATH``.

    Raises:
        AuthenticationError: If no usable credentials can be obtained
    """
    try:
        service_account_file = os.getenv('GOOGLE_SERVICE_ACCOUNT_FILE')
        if service_account_file:
            logging.info(f"Using service account: {service_account_file}")
            return service_account.Credentials.from_service_account_file(service_account_file, scopes=SCOPES)
        return _user_credentials(
            os.getenv('TOKEN_PATH', 'token.json'),
            os.getenv('GOOGLE_APPLICATION_CREDENTIALS', 'credentials.json'),
        )
    except Exception as e:
        logging.error(f"Failed to get Google credentials: {str(e)}")
        raise AuthenticationError(f"Failed to authenticate with Google: {str(e)}")


def _user_credentials(token_path: str, client_secrets_path: str):
    creds = None
    if os.path.exists(token_path):
        creds = Credentials.from_authorized_user_file(token_path, SCOPES)
    if creds and creds.valid:
        return creds

    if creds and creds.expired and creds.refresh_token:
        creds.refresh(Request())
    else:
        if not os.path.exists(client_secrets_path):
            raise FileNotFoundError(f"OAuth client file not found at: {client_secrets_path}")
        logging.info(f"Starting OAuth consent flow with {client_secrets_path}")
        creds = InstalledAppFlow.from_client_secrets_file(client_secrets_path, SCOPES).run_local_server(port=0)

    with open(token_path, 'w') as token:
        token.write(creds.to_json())
    logging.info(f"Cached user token at {token_path}")
    return creds


def build_services(creds=None):
    """Return ``(sheets, slides, drive)`` API clients sharing one set of credentials."""
    creds = creds or get_google_credentials()
    sheets = build('sheets', 'v4', credentials=creds, cache_discovery=False)
    slides = build('slides', 'v1', credentials=creds, cache_discovery=False)
    drive = build('drive', 'v3', credentials=creds, cache_discovery=False)
    return sheets, slides, drive
