"""
Manual cleanup script for expired verification state.

NOTE: Automatic cleanup is handled by CleanupScheduler (runs hourly).
This script is provided for:
- Manual/emergency cleanup operations
- Testing cleanup logic in development

For production, the scheduler in services/cleanup_scheduler.py handles automatic cleanup.
"""
import sys
import os

# Add the parent directory to sys.path to allow imports from src
sys.path.append(os.path.join(os.path.dirname(__file__), '../src'))

from core.database import SessionLocal
from services.cleanup_service import CleanupService


def main():
    print("Starting Cleanup Job...")
    db = SessionLocal()
    try:
        service = CleanupService(db)

        print("Purging expired pending signups...")
        signups = service.purge_expired_pending_signups()
        print(f"Deleted {signups} expired pending signups.")

        print("Purging expired password reset tokens...")
        resets = service.purge_expired_password_resets()
        print(f"Deleted {resets} expired password reset tokens.")

        print("Cleanup Job Completed Successfully.")
    except Exception as e:
        print(f"Error during cleanup: {e}")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
