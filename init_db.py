"""
Initialize database and create the first super admin
Run from project root: python init_db.py
"""
import getpass

from app import create_app
from extensions import db
from models.snapshots import BackupConfig
from models.users import User, USER_ACTIVE
from blueprints.auth.forms import validate_password_strength


def init_db():
    """Create tables, the backup settings row and a super admin account"""
    app = create_app()

    with app.app_context():
        print("Creating database tables...")
        db.create_all()
        BackupConfig.get()
        print("✓ Database tables created successfully!")
        print(f"Database location: {app.config['SQLALCHEMY_DATABASE_URI']}")

        # Print all tables
        print("\nTables created:")
        for table in db.metadata.sorted_tables:
            print(f"  - {table.name}")

        if User.query.filter_by(role='SUPER_ADMIN').count() > 0:
            print("\nA super admin already exists; skipping account creation.")
            return

        print("\n=== Create Super Admin ===")
        email = input("Email: ").strip().lower()
        name_arabic = input("Name (Arabic): ").strip()
        name_english = input("Name (English, optional): ").strip() or None

        # Password with validation
        while True:
            password = getpass.getpass("Password: ").strip()
            is_valid, error_msg = validate_password_strength(password)
            if not is_valid:
                print(f"❌ {error_msg}\n")
                continue
            if password == getpass.getpass("Confirm Password: ").strip():
                break
            print("❌ Passwords don't match. Try again.\n")

        user = User(
            email=email,
            name_arabic=name_arabic,
            name_english=name_english,
            role='SUPER_ADMIN',
            status=USER_ACTIVE,
        )
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        print(f"\n✓ Super admin {email} created.")


if __name__ == '__main__':
    init_db()
