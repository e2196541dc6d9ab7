"""
Ledger Verification Script

Verifies data integrity of the payments ledger.
Run from project root: python scripts/verify.py
"""

import os
import sys
from datetime import datetime

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pandas as pd

from app.services.excel_manager import LEDGER_FILE, ExcelManager


def verify_ledger() -> bool:
    """Verify the ledger after a simulation."""

    print("=" * 60)
    print("LEDGER VERIFICATION REPORT")
    print("=" * 60)
    print(f"Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"File: {LEDGER_FILE}")
    print("=" * 60)

    if not LEDGER_FILE.exists():
        print("\nLedger file not found!")
        print("   Run the simulation first: python scripts/simulate.py")
        return False

    df = pd.DataFrame(ExcelManager.get_all_payments())
    print("\nLedger loaded")

    print("\nSTATISTICS:")
    print(f"   Paid Payments: {len(df)}")
    print(f"   Columns: {len(df.columns)}")

    ok = True

    missing = [col for col in ExcelManager.LEDGER_COLUMNS if col not in df.columns]
    if missing:
        print(f"\nMissing Columns: {missing}")
        ok = False
    else:
        print("\nAll ledger columns present")

    if df.empty:
        print("\nLedger is empty")
        return ok

    # A payment is counted once, however many notifications arrived
    duplicates = int(df["payment_id"].duplicated().sum())
    if duplicates > 0:
        print(f"\n{duplicates} duplicate payment IDs found!")
        ok = False
    else:
        print("No duplicate payment IDs")

    settled_twice = df[df["order_id"].duplicated(keep=False)]
    if not settled_twice.empty:
        print(f"{settled_twice['order_id'].nunique()} orders paid more than once:")
        print(settled_twice[["payment_id", "order_id", "amount"]].to_string(index=False))

    mismatched = df[(df["amount"] - df["order_total"]).abs() > df["order_total"] * 0.10]
    if not mismatched.empty:
        print(f"\n{len(mismatched)} payments differ from their order total by more than 10%:")
        print(mismatched[["payment_id", "order_id", "order_total", "amount"]].to_string(index=False))
        ok = False
    else:
        print("All amounts within tolerance of their order totals")

    print("\nREVENUE:")
    print(f"   Total: Rp {df['amount'].sum():,.0f}")
    print(f"   Average: Rp {df['amount'].mean():,.0f}")
    by_method = df.groupby("payment_method")["amount"].agg(["count", "sum"])
    print(by_method.to_string())

    print("\nRECENT PAYMENTS:")
    print("-" * 60)
    cols = ["payment_id", "order_id", "table_number", "amount", "payment_method", "paid_at"]
    print(df[cols].tail(5).to_string(index=False))

    print("\n" + "=" * 60)
    print("VERIFICATION COMPLETE" if ok else "VERIFICATION FOUND PROBLEMS")
    print("=" * 60)

    return ok


if __name__ == "__main__":
    sys.exit(0 if verify_ledger() else 1)
