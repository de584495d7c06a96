import sys
import os
import io
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from csv_io import read_transactions, write_accounts, format_decimal
from errors import MalformedRecord
from models import Transaction, TransactionType, ClientAccount, ProcessingStats


class TestReadTransactions:
    def test_normalizes_whitespace_and_case(self):
        stream = io.StringIO("type, client, tx, amount\n DEPOSIT , 1 , 2 , 3.5 \nDispute,1,2,\n")

        transactions = list(read_transactions(stream))

        assert transactions == [
            Transaction(TransactionType.DEPOSIT, 1, 2, Decimal("3.5")),
            Transaction(TransactionType.DISPUTE, 1, 2),
        ]

    def test_missing_trailing_amount_column(self):
        stream = io.StringIO("type,client,tx,amount\nchargeback,5,6\n")

        assert list(read_transactions(stream)) == [Transaction(TransactionType.CHARGEBACK, 5, 6)]

    def test_byte_order_mark_in_header(self):
        stream = io.StringIO("\ufefftype,client,tx,amount\ndeposit,1,1,5\n")
        stats = ProcessingStats()

        transactions = list(read_transactions(stream, stats=stats))

        assert transactions == [Transaction(TransactionType.DEPOSIT, 1, 1, Decimal("5"))]
        assert stats.malformed == 0

    def test_is_lazy(self):
        stream = io.StringIO("type,client,tx,amount\ndeposit,1,1,1\ndeposit,1,2,1\n")

        transactions = read_transactions(stream)

        assert next(transactions).transaction_id == 1
        assert next(transactions).transaction_id == 2

    def test_malformed_rows_skipped(self):
        stream = io.StringIO(
            "type,client,tx,amount\n"
            "deposit,1,1,1\n"
            "refund,1,2,1\n"
            "deposit,1,3,1,extra\n"
            "withdrawal,1,4\n"
            "deposit,1,5,2\n"
        )
        stats = ProcessingStats()

        transactions = list(read_transactions(stream, stats=stats))

        assert [t.transaction_id for t in transactions] == [1, 5]
        assert stats.malformed == 3

    def test_strict_raises(self):
        stream = io.StringIO("type,client,tx,amount\ndeposit,1,1,1\ndeposit,x,2,1\n")

        with pytest.raises(MalformedRecord):
            list(read_transactions(stream, strict=True))

    def test_missing_column(self):
        stream = io.StringIO("type,client,amount\ndeposit,1,1\n")

        with pytest.raises(MalformedRecord):
            list(read_transactions(stream, strict=True))


class TestWriteAccounts:
    def test_format_decimal(self):
        assert format_decimal(Decimal("1.5")) == "1.5000"
        assert format_decimal(Decimal("0")) == "0.0000"
        assert format_decimal(Decimal("-30")) == "-30.0000"

    def test_writes_rows_in_given_order(self):
        accounts = [
            ClientAccount(client_id=2, available=Decimal("2"), held=Decimal("10"), locked=False),
            ClientAccount(client_id=1, available=Decimal("1.2345"), locked=True),
        ]
        stream = io.StringIO()

        write_accounts(accounts, stream)

        assert stream.getvalue() == (
            "client,available,held,total,locked\n"
            "2,2.0000,10.0000,12.0000,false\n"
            "1,1.2345,0.0000,1.2345,true\n"
        )

    def test_empty_snapshot_writes_header(self):
        stream = io.StringIO()
        write_accounts([], stream)
        assert stream.getvalue() == "client,available,held,total,locked\n"
