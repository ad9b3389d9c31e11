import argparse
import os
import random
import string
import sys

# Ensure project root is importable when running from scripts/
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from config import Config
from utils.roster import RosterStore


FIRST_NAMES = [
    "James", "Mary", "John", "Patricia", "Robert", "Jennifer", "Michael", "Linda",
    "William", "Elizabeth", "David", "Barbara", "Richard", "Susan", "Joseph", "Jessica",
]

LAST_NAMES = [
    "Smith", "Johnson", "Williams", "Brown", "Jones", "Garcia", "Miller", "Davis",
    "Rodriguez", "Martinez", "Wilson", "Anderson", "Taylor", "Moore", "Lee", "Clark",
]

COURSES = ["Web Development", "Data Science", "Graphic Design", "Digital Marketing", "Python Basics"]
BATCHES = ["Morning 9-11", "Afternoon 2-4", "Evening 6-8", "Weekend"]
FEES = [500, 750, 1000, 1500, 2500]


def random_phone() -> str:
    return "+1555" + "".join(random.choice(string.digits) for _ in range(7))


def random_student() -> dict:
    first, last = random.choice(FIRST_NAMES), random.choice(LAST_NAMES)
    fee = random.choice(FEES)
    discount = random.choice([0, 0, 0, 50, 100])
    # Skew towards partly paid balances but allow fully paid ones
    paid = random.choice([0, fee - discount, round(random.uniform(0, fee - discount), 2)])
    return {
        "name": f"{first} {last}",
        "phone": random_phone(),
        "email": f"{first}.{last}{random.randint(1, 999)}@example.com".lower(),
        "course": random.choice(COURSES),
        "batchTime": random.choice(BATCHES),
        "totalFee": fee,
        "discount": discount,
        "amountPaid": paid,
    }


def seed_students(path: str, count: int = 50) -> int:
    store = RosterStore(path, Config.REQUIRED_STUDENT_FIELDS)
    total = 0
    for _ in range(count):
        _, total = store.add(random_student())
    return total


def main():
    parser = argparse.ArgumentParser(description="Seed mock students into the roster workbook.")
    parser.add_argument("--count", type=int, default=50, help="How many students to add (default: 50)")
    parser.add_argument("--file", type=str, default=Config.STUDENTS_FILE, help="Roster workbook to write")
    args = parser.parse_args()

    total = seed_students(args.file, count=args.count)
    print(f"Added {args.count} mock students; roster now holds {total}.")


if __name__ == "__main__":
    main()
