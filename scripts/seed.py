"""Populate a development database with users, articles, comments and relations."""
import asyncio
import argparse
import random
import time
from datetime import datetime, timezone, timedelta

from sqlalchemy import insert

from conduit.database import engine, async_session, Base
from conduit.models import Article, Comment, Tag, User, article_tags, favourites, follows
from conduit.security import pwd_context
from conduit.services.article_service import slugify

TAGS = ["python", "fastapi", "postgresql", "docker", "kubernetes", "react",
        "typescript", "aws", "devops", "testing", "performance", "security",
        "graphql", "rest-api", "dragons", "training"]

# Every seeded account logs in with this password
SEED_PASSWORD = "password123"


async def seed(small: bool = False):
    num_users = 10 if small else 50
    num_articles = 100 if small else 5000
    max_comments = 2 if small else 5

    print(f"Seeding: {num_users} users, {num_articles} articles")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    # One argon2 hash shared by all seed users keeps seeding fast
    password_hash = await asyncio.to_thread(pwd_context.hash, SEED_PASSWORD)

    async with async_session() as session:
        tags = [Tag(name=name) for name in TAGS]
        session.add_all(tags)

        users = [
            User(
                username=f"user_{i:04d}",
                email=f"user_{i:04d}@example.com",
                password=password_hash,
                bio=f"I am test user number {i}. I write about technology.",
            )
            for i in range(num_users)
        ]
        session.add_all(users)
        await session.flush()
        print(f"  Created {len(tags)} tags, {len(users)} users")

        follow_rows = set()
        for user in users:
            for other in random.sample(users, k=min(5, num_users)):
                if other.id != user.id:
                    follow_rows.add((user.id, other.id))
        await session.execute(
            insert(follows),
            [{"follower_id": a, "followed_id": b} for a, b in follow_rows],
        )

        batch_size = 500
        total_comments = 0
        for batch_start in range(0, num_articles, batch_size):
            batch_end = min(batch_start + batch_size, num_articles)
            batch = []
            for i in range(batch_start, batch_end):
                topic = random.choice(TAGS)
                title = f"Article {i}: How to optimize {topic} applications"
                created = datetime.now(timezone.utc) - timedelta(days=random.randint(0, 365))
                batch.append(Article(
                    slug=slugify(title),
                    title=title,
                    description=f"A guide to optimizing {topic} applications for production.",
                    body=f"This is the full body of article {i}. " * 20,
                    created_at=created,
                    updated_at=created,
                    author_id=random.choice(users).id,
                ))
            session.add_all(batch)
            await session.flush()

            tag_rows, favourite_rows = [], []
            for article in batch:
                for tag in random.sample(tags, k=random.randint(1, 4)):
                    tag_rows.append({"article_id": article.id, "tag_id": tag.id})
                for user in random.sample(users, k=random.randint(0, 3)):
                    favourite_rows.append({"article_id": article.id, "user_id": user.id})
                for _ in range(random.randint(1, max_comments)):
                    author = random.choice(users)
                    session.add(Comment(
                        body=f"Great article! Comment by {author.username}.",
                        article_id=article.id,
                        author_id=author.id,
                    ))
                    total_comments += 1

            await session.execute(insert(article_tags), tag_rows)
            if favourite_rows:
                await session.execute(insert(favourites), favourite_rows)
            await session.flush()
            print(f"  Batch {batch_start}-{batch_end}: articles created")

        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Users: {num_users} (password: {SEED_PASSWORD})")
    print(f"  Articles: {num_articles}")
    print(f"  Comments: {total_comments}")
    print(f"  Follows: {len(follow_rows)}")


def main():
    parser = argparse.ArgumentParser(description="Seed the Conduit database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (100 articles)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
