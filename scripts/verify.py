"""
Order History Verification Script

Verifies data integrity of the order history workbook.
Run from project root: python scripts/verify.py

Author: Khalil_Bannouri
Version: 1.0.0
"""

import os
import sys
from datetime import datetime

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pandas as pd

from tableside.services.excel_manager import ExcelManager

TERMINAL_STATUSES = {"completed", "cancelled"}


def verify_history() -> bool:
    """Verify the order history workbook after a simulation."""
    manager = ExcelManager()
    excel_file = manager.orders_file

    print("=" * 60)
    print("🔍 ORDER HISTORY VERIFICATION REPORT")
    print("=" * 60)
    print(f"⏰ Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"📄 File: {excel_file}")
    print("=" * 60)

    if not excel_file.exists():
        print("\n❌ Workbook not found!")
        print("   Run the simulation first: python scripts/simulate.py")
        return False

    df = pd.read_excel(excel_file, engine='openpyxl')
    print(f"\n✅ File loaded successfully!")

    print(f"\n📊 STATISTICS:")
    print(f"   Exported Orders: {len(df)}")

    missing = [col for col in manager.ORDER_COLUMNS if col not in df.columns]
    if missing:
        print(f"\n⚠️ Missing Columns: {missing}")
    else:
        print(f"\n✅ All columns present")

    ok = not missing

    if 'order_id' in df.columns:
        duplicates = df['order_id'].duplicated().sum()
        if duplicates > 0:
            print(f"\n⚠️ {duplicates} duplicate order IDs found!")
            ok = False
        else:
            print(f"✅ No duplicate order IDs")

    if 'order_status' in df.columns:
        unexpected = set(df['order_status'].dropna()) - TERMINAL_STATUSES
        if unexpected:
            print(f"\n⚠️ Non-terminal statuses exported: {sorted(unexpected)}")
            ok = False
        else:
            print(f"✅ Only finished orders exported")

    if 'total' in df.columns and 'payment_status' in df.columns:
        paid = df[df['payment_status'] == 'paid']['total'].sum()
        print(f"\n💰 REVENUE:")
        print(f"   Paid: ${paid:.2f}")

    print(f"\n📋 RECENT ORDERS:")
    print("-" * 60)
    if len(df) > 0:
        cols = ['order_id', 'table_id', 'total', 'order_status', 'payment_status']
        cols = [c for c in cols if c in df.columns]
        print(df[cols].tail(5).to_string(index=False))

    print("\n" + "=" * 60)
    print("✅ VERIFICATION COMPLETE" if ok else "⚠️ VERIFICATION FOUND ISSUES")
    print("=" * 60)

    return ok


if __name__ == "__main__":
    sys.exit(0 if verify_history() else 1)
