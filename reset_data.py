"""
reset_data.py
-------------
Utility script to clear all stored data (profiles, cars, rentals, documents,
reminders) from the local data.pkl file. Uploaded files are left in place.

Usage:
    $ python reset_data.py

Repopulate demo data afterwards with:
    $ python seeds.py

`flask --app drively reset-data` does the same from the Flask CLI.
"""

from drively.config import load_config
from drively.models.store import Store


def main():
    """Empty every table of the store named by DRIVELY_DATA_PATH and save it."""
    store = Store.instance(load_config()["DATA_PATH"])
    store.clear()

    print(f"{store.path} has been cleared.")
    print("Tip: run `python seeds.py` to regenerate demo data.")


if __name__ == "__main__":
    main()
