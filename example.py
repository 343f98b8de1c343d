"""Example usage of the json_tables library."""

import asyncio
from dataclasses import asdict, dataclass
from pathlib import Path

from json_tables import Database, Table, TableMode


@dataclass
class Person:
    key: str
    name: str
    age: int


def person_from_json(data):
    return Person(key=data["key"], name=data["name"], age=data["age"])


async def main():
    path = Path("./example_data/people.json")

    people = Table(TableMode.KEYED, person_from_json, asdict)
    visits = Table(TableMode.INDEXED, str, str)

    db = Database(path, autosave_interval_ms=1000)
    db.add_table("people", people)
    db.add_table("visits", visits)

    async with db:
        print(f"Loaded {people.count} people and {visits.count} visits from {path}")

        for key, name, age in [("1", "Alice", 30), ("2", "Bob", 25), ("3", "Charlie", 35)]:
            people.add(Person(key=key, name=name, age=age))
        visits.add("visit from example.py")

        print("\nAll people in database:")
        for person in people:
            print(f"  [{person.key}] {person.name}, age {person.age}")

    print(f"\nSaved to {path} ({path.stat().st_size} bytes):")
    print(path.read_text())


if __name__ == "__main__":
    asyncio.run(main())
