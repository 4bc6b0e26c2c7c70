from app import create_app
from models import db, Setting, PricingRule
import storage


def seed(reset=False):
    app = create_app()
    with app.app_context():
        if reset:
            storage.reset_dataset(db.session, app.config['DEFAULT_TOTAL_SPOTS'])
        else:
            storage.load_dataset(db.session, app.config['DEFAULT_TOTAL_SPOTS'])

        setting = db.session.query(Setting).first()
        print(f"Total spots: {setting.total_spots}")
        for rule in db.session.query(PricingRule).order_by(PricingRule.id):
            state = 'active' if rule.active else 'inactive'
            print(f"Rule {rule.name} ({state}): first hour ${rule.first_hour_value:.2f}")
        print("Database seeded!")


if __name__ == '__main__':
    import sys
    seed(reset='--reset' in sys.argv)
