import random
from faker import Faker
from app import create_app
from identity import DEMO_USER, SqlIdentityProvider
from local_store import LocalStore, CROPS_KEY
from models import db, User, LocalEntry, ActivityLog
from repository import now_iso
from retry import new_idempotency_key

# Initialize Faker
fake = Faker()

STARTER_CROPS = [
    ("Maize", "Hybrid 614", 120, "Moderate", "18-27°C"),
    ("Tomato", "Roma", 75, "High", "20-25°C"),
    ("Wheat", "Durum", 110, "Low", "15-24°C"),
    ("Rice", "Basmati 370", 135, "Very High", "22-32°C"),
    ("Soybean", "Williams 82", 100, "Moderate", "20-30°C"),
    ("Potato", "Russet Burbank", 90, "Moderate", "15-20°C"),
]

def clear_data():
    """Deletes users, local entries and activity logs."""
    print("🗑️  Cleaning old data...")
    for model in (ActivityLog, LocalEntry, User):
        db.session.query(model).delete()
    db.session.commit()
    print("✅ Local database cleared.")

# --------------------------------------------------
# 1. USERS
# --------------------------------------------------
def seed_users(provider, count=5):
    print("👨‍🌾 Seeding Users...")
    users = [provider.register(DEMO_USER['email'], DEMO_USER['password'], DEMO_USER['name'], user_id=DEMO_USER['id'])]

    for _ in range(count):
        users.append(provider.register(fake.unique.email(), "password123", fake.name()))
    return users

# --------------------------------------------------
# 2. CROP VARIETIES (local store, pushed on the next sync)
# --------------------------------------------------
def seed_crops(store):
    print("🌱 Seeding Crop Varieties...")
    crops = []
    for name, variety, days, water, temp in STARTER_CROPS:
        crops.append({
            'id': new_idempotency_key(),
            'created_at': now_iso(),
            'name': name,
            'variety': variety,
            'growth_period_days': days + random.randint(-5, 5),
            'water_requirement': water,
            'ideal_temperature': temp,
            'synced': False,
        })
    store.replace_list(CROPS_KEY, crops)
    return crops

# --------------------------------------------------
# RUNNER
# --------------------------------------------------
if __name__ == '__main__':
    app = create_app()
    with app.app_context():
        clear_data()
        users = seed_users(SqlIdentityProvider())
        crops = seed_crops(LocalStore())
        print(f"✅ Seeded {len(users)} users and {len(crops)} crop varieties.")
