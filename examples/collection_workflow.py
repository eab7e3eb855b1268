"""
Collection Workflow Examples
Walks receipt books from allocation through posting and re-use
"""

import logging
from datetime import date

from receipt_books import (
    CollectionEngine,
    CollectionEntry,
    ConfigLoader,
    ConfigValidator,
    EngineConfig,
    LedgerResult,
)


# =============================================================================
# Example 1: Programmatic Configuration
# =============================================================================

def programmatic_config_example() -> EngineConfig:
    """Configure the engine programmatically with all options"""
    loader = ConfigLoader()

    return loader.load(
        env=False,
        config={
            # Ledger backend
            "ledger_base_url": "http://localhost:3001",
            "ledger_api_key": "your-dashboard-api-key",
            "timeout": 30000,
            "retry_attempts": 3,
            "retry_delay": 1000,

            # Posting
            "max_workers": 4,
            "batch_timeout": 60,
            "voucher_type": "Dashboard Receipt",

            # Allocation
            "default_pages_per_book": 50,
            "activate_on_create": True,

            # Persistence
            "store_path": "./data/receipt-books.json",
        },
    )


# =============================================================================
# Example 2: Environment Variables Configuration
# =============================================================================

def env_config_example() -> EngineConfig:
    """
    Load configuration from environment variables

    export RECEIPT_BOOKS_LEDGER_BASE_URL="http://localhost:3001"
    export RECEIPT_BOOKS_LEDGER_API_KEY="your-dashboard-api-key"
    export RECEIPT_BOOKS_STORE_PATH="./data/receipt-books.json"
    export RECEIPT_BOOKS_MAX_WORKERS="8"
    """
    return ConfigLoader().load(env=True)


# =============================================================================
# Example 3: Configuration Validation
# =============================================================================

def validation_example() -> None:
    """Validate configuration before use"""
    result = ConfigValidator().validate({
        "ledger_base_url": "localhost:3001",
        "max_workers": 32,
    })

    if not result.valid:
        print("Configuration validation failed:")
        for error in result.errors:
            print(f"  - {error.field}: {error.message}")


# =============================================================================
# Example 4: One Collection Cycle
# =============================================================================

class PrintingLedger:
    """Stand-in ledger that accepts every receipt except page 2"""

    def create_receipt_record(self, party_name, entry_date, amounts, narration=None,
                              voucher_number=None) -> LedgerResult:
        print(f"  ledger <- {narration}: {party_name} {amounts.total:.2f}")
        if voucher_number == "2":
            return LedgerResult.failed("Party not found in ledger")
        return LedgerResult.ok(f"V-{voucher_number}")


def collection_cycle_example() -> None:
    """Allocate, issue, reconcile and post a book, then re-use it"""
    engine = CollectionEngine(EngineConfig(), ledger=PrintingLedger())

    batch = engine.allocate_bulk(1, 100, pages_per_book=50, batch_label="SET1")
    book = batch.created_books[0]
    print(f"Created {batch.count} books: {[b.book_label for b in batch.created_books]}")

    engine.assign([book.id], "Hari", route_name="North Market")
    engine.save_summary(book.id, entry_count=3, cash=450, fonepay=120)

    entries = [
        CollectionEntry(receipt_number=1, party_name="Ram Traders", cash=300),
        CollectionEntry(receipt_number=2, party_name="Sita Stores", fonepay=120),
        CollectionEntry(receipt_number=3, party_name="Gita Hardware", cash=150),
    ]
    check = engine.compare(book.id, entries)
    if not (check.entries_match and check.totals_match):
        print(f"Summary mismatch: {check.per_field_delta}")

    session = engine.submit(book.id, date.today(), "Hari", entries)
    print(f"Posted {session.success_count}/{session.total_count}")

    sheet = engine.open_for_entry(book.id)
    print(f"Rows to retry or enter next: {[row.receipt_number for row in sheet.rows]}")

    book = engine.reready(book.id)
    print(f"Book {book.book_label} cycle {book.current_cycle} starts at page {book.available_from}")


# =============================================================================
# Run Examples
# =============================================================================

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)

    print("=== Receipt Book Examples ===\n")

    print("1. Configuration Validation:")
    validation_example()
    print()

    print("2. Collection Cycle:")
    collection_cycle_example()
