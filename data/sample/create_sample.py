"""Script to seed a SQLite database with synthetic memes and interactions.

Generates a small catalogue with tags, authors, follows and interaction
history so the API and worker can be exercised without production data.
"""

import random
import time

from memerank.recommendation.hot_score import meme_hot_score
from memerank.utils import database

TAGS = [
    "cats",
    "dogs",
    "programming",
    "gaming",
    "politics",
    "sports",
    "anime",
    "food",
    "science",
    "movies",
]


def create_sample_data(db_path: str = "data/sample/memerank.db", seed: int = 42) -> None:
    """Populate a database with sample memes, users and interactions.

    Args:
        db_path: Path of the SQLite database to create or extend.
        seed: Random seed, so repeated runs produce the same data.
    """
    random.seed(seed)
    now = time.time()
    database.init_db(db_path)

    users = [f"user{i}" for i in range(1, 21)]
    meme_ids = []
    for i in range(1, 51):
        created_at = now - random.uniform(0, 45) * 86400
        modified_at = None
        # Roughly one in five memes has been edited since posting
        if random.random() < 0.2:
            modified_at = created_at + random.uniform(0, now - created_at)
        meme_id = f"meme{i}"
        database.insert_meme(
            db_path,
            {
                "id": meme_id,
                "title": f"Meme {i}",
                "author_id": random.choice(users),
                "tags": random.sample(TAGS, random.randint(1, 3)),
                "views": random.randint(0, 500),
                "created_at": created_at,
                "modified_at": modified_at,
            },
        )
        meme_ids.append(meme_id)

    n_interactions = 0
    for user_id in users:
        for meme_id in random.sample(meme_ids, random.randint(3, 20)):
            interaction_type = random.choices(
                database.INTERACTION_TYPES, weights=[10, 2, 3, 2, 4, 20]
            )[0]
            timestamp = now - random.uniform(0, 30) * 86400
            if database.record_interaction(db_path, user_id, meme_id, interaction_type, timestamp):
                n_interactions += 1
        for followed in random.sample(users, 3):
            if followed != user_id:
                database.insert_follow(db_path, user_id, followed, now)

    for meme_id in meme_ids:
        meme = database.get_meme(db_path, meme_id)
        database.update_hot_score(db_path, meme_id, meme_hot_score(meme, now))

    print(
        f"Created sample data with {n_interactions} interactions across "
        f"{len(users)} users and {len(meme_ids)} memes in {db_path}"
    )


if __name__ == "__main__":
    create_sample_data()
