# JUAKALI/backend/tests/test_loans.py : loan book, repayment ledger and recovery

from datetime import date, datetime

from juakali.models import models
from juakali.services.loan_service import LoanService, loan_terms


def request_loan(client, headers, **overrides):
    payload = {"principalAmount": 10000, "dailyInterestRate": 0.01, "loanTermDays": 10}
    payload.update(overrides)
    return client.post("/api/loans", json=payload, headers=headers)


def give_credit(db, user, limit=50000):
    db.add(models.CreditProfile(user_id=user.id, credit_limit=limit))
    db.commit()


def credit_of(db, user):
    db.expire_all()
    return db.query(models.CreditProfile).filter(models.CreditProfile.user_id == user.id).one()


class TestLoanRequests:
    def test_request_loan(self, client, db, login_as):
        borrower, headers = login_as("retailer")
        give_credit(db, borrower)

        response = request_loan(client, headers, goodsCategory="Groceries", goodsDescription="Maize flour")
        assert response.status_code == 201
        loan = response.json()["loan"]
        assert loan["status"] == "pending"
        assert loan["retailer_id"] == borrower.id
        assert loan["lender_id"] is None
        assert loan["total_amount"] == 11000
        assert loan["daily_payment_amount"] == 1100
        assert loan["outstanding_amount"] == 11000
        assert loan["goods_category"] == "Groceries"
        assert loan["retailer_name"] == borrower.full_name

        # Nothing is owed until the loan is disbursed
        assert credit_of(db, borrower).outstanding_balance == 0

    def test_default_interest_rate(self, client, db, login_as):
        borrower, headers = login_as("customer")
        give_credit(db, borrower)
        body = client.post("/api/loans", json={"principalAmount": 1000, "loanTermDays": 10}, headers=headers).json()
        assert body["loan"]["daily_interest_rate"] == 0.05
        assert body["loan"]["total_amount"] == 1500

    def test_request_beyond_available_credit(self, client, db, login_as):
        borrower, headers = login_as("retailer")
        give_credit(db, borrower, limit=5000)

        response = request_loan(client, headers)
        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Loan amount exceeds available credit of KSh 5,000"}

    def test_borrower_without_credit_profile(self, client, login_as):
        _, headers = login_as("retailer")
        assert request_loan(client, headers).status_code == 400

    def test_only_borrowers_request_loans(self, client, login_as):
        _, headers = login_as("lender")
        response = request_loan(client, headers)
        assert response.status_code == 403
        assert response.json()["error"] == "Retailer/Customer access required"

    def test_unknown_lender_or_supplier(self, client, db, login_as, make_user):
        borrower, headers = login_as("retailer")
        give_credit(db, borrower)
        not_a_lender = make_user("supplier")

        response = request_loan(client, headers, lenderId=not_a_lender.id)
        assert response.status_code == 404
        assert response.json()["error"] == "Lender not found"
        assert request_loan(client, headers, supplierId=9999).json()["error"] == "Supplier not found"

    def test_invalid_terms(self, client, db, login_as):
        borrower, headers = login_as("retailer")
        give_credit(db, borrower)
        response = request_loan(client, headers, loanTermDays=0)
        assert response.status_code == 400
        assert response.json()["error"] == "Validation failed"


class TestLoanVisibility:
    def test_each_role_sees_its_share_of_the_book(self, client, db, login_as):
        borrower, headers = login_as("retailer")
        other_borrower, other_headers = login_as("retailer")
        lender, lender_headers = login_as("lender")
        other_lender, other_lender_headers = login_as("lender")
        _, admin_headers = login_as("admin")
        give_credit(db, borrower)
        give_credit(db, other_borrower)

        open_id = request_loan(client, headers).json()["loan"]["id"]
        directed_id = request_loan(client, other_headers, lenderId=other_lender.id).json()["loan"]["id"]

        def ids(h, query=""):
            return {loan["id"] for loan in client.get(f"/api/loans{query}", headers=h).json()["loans"]}

        assert ids(headers) == {open_id}
        assert ids(other_headers) == {directed_id}
        assert ids(lender_headers) == {open_id}
        assert ids(other_lender_headers) == {open_id, directed_id}
        assert ids(admin_headers) == {open_id, directed_id}
        assert ids(admin_headers, "?status=approved") == set()

        response = client.get(f"/api/loans/{directed_id}", headers=headers)
        assert response.status_code == 404
        assert response.json()["error"] == "Loan not found"
        assert client.get(f"/api/loans/{directed_id}", headers=other_headers).json()["loan"]["lender_id"] == other_lender.id

    def test_suppliers_have_no_loan_book(self, client, login_as):
        _, headers = login_as("supplier")
        assert client.get("/api/loans", headers=headers).status_code == 403

    def test_pagination(self, client, db, login_as):
        borrower, headers = login_as("retailer")
        give_credit(db, borrower)
        for _ in range(3):
            request_loan(client, headers, principalAmount=1000)

        body = client.get("/api/loans?limit=2", headers=headers).json()
        assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}


class TestLoanLifecycle:
    def setup_loan(self, client, db, login_as):
        self.borrower, self.headers = login_as("retailer")
        self.lender, self.lender_headers = login_as("lender")
        give_credit(db, self.borrower)
        self.loan_id = request_loan(client, self.headers).json()["loan"]["id"]

    def set_status(self, client, status, headers=None, **extra):
        return client.patch(f"/api/loans/{self.loan_id}/status", json={"status": status, **extra},
                            headers=headers or self.lender_headers)

    def activate(self, client):
        self.set_status(client, "approved")
        return self.set_status(client, "active")

    def repay(self, client, amount, headers=None):
        return client.post(f"/api/loans/{self.loan_id}/repayments",
                           json={"amount": amount, "paymentMethod": "mpesa", "transactionReference": "QKJ4ABC123"},
                           headers=headers or self.headers)

    def test_approval_assigns_the_lender(self, client, db, login_as):
        self.setup_loan(client, db, login_as)

        response = self.set_status(client, "approved", notes="Good repayment history")
        assert response.status_code == 200
        loan = response.json()["loan"]
        assert loan["status"] == "approved"
        assert loan["lender_id"] == self.lender.id
        assert loan["approved_at"] is not None

        notes = db.query(models.Notification).filter(models.Notification.lender_id == self.lender.id).all()
        assert len(notes) == 1
        assert notes[0].title == "Loan Status Updated"
        assert notes[0].message.endswith("from pending to approved: Good repayment history")

    def test_disbursement_updates_credit_and_cash_flow(self, client, db, login_as):
        self.setup_loan(client, db, login_as)

        loan = self.activate(client).json()["loan"]
        assert loan["status"] == "active"
        assert loan["due_date"] is not None

        credit = credit_of(db, self.borrower)
        assert credit.total_borrowed == 10000
        assert credit.outstanding_balance == 11000

        flow = db.query(models.CashFlowTransaction).filter(models.CashFlowTransaction.lender_id == self.lender.id).one()
        assert flow.transaction_type == "lending"
        assert flow.amount == 10000
        assert flow.reference_id == f"LOAN-{self.loan_id}"

        # The first loan now counts against the limit
        assert request_loan(client, self.headers, principalAmount=40000).status_code == 400

    def test_invalid_transitions(self, client, db, login_as):
        self.setup_loan(client, db, login_as)

        response = self.set_status(client, "active")
        assert response.status_code == 400
        assert response.json()["error"] == "Cannot change loan status from pending to active"

        self.activate(client)
        response = self.set_status(client, "completed")
        assert response.status_code == 400
        assert response.json()["error"] == "Loan still has an outstanding balance"

        assert self.set_status(client, "sold").status_code == 400

    def test_borrowers_cannot_change_status(self, client, db, login_as):
        self.setup_loan(client, db, login_as)
        response = self.set_status(client, "approved", headers=self.headers)
        assert response.status_code == 403
        assert response.json()["error"] == "Lender/Admin access required"

    def test_rejected_loan_is_final(self, client, db, login_as):
        self.setup_loan(client, db, login_as)
        assert self.set_status(client, "rejected").status_code == 200

        # A rejected loan stays with no lender, so it drops out of the open book
        assert self.set_status(client, "approved").status_code == 404
        _, admin_headers = login_as("admin")
        response = self.set_status(client, "approved", headers=admin_headers)
        assert response.json()["error"] == "Cannot change loan status from rejected to approved"

    def test_repayment_ledger(self, client, db, login_as):
        self.setup_loan(client, db, login_as)
        self.activate(client)

        response = self.repay(client, 1100)
        assert response.status_code == 201
        body = response.json()
        assert body["repayment"]["amount"] == 1100
        assert body["repayment"]["payment_method"] == "mpesa"
        assert body["loan"]["total_repaid"] == 1100
        assert body["loan"]["outstanding_amount"] == 9900

        credit = credit_of(db, self.borrower)
        assert credit.total_repaid == 1100
        assert credit.outstanding_balance == 9900

        inflow = db.query(models.CashFlowTransaction).filter(
            models.CashFlowTransaction.transaction_type == "repayment"
        ).one()
        assert inflow.lender_id == self.lender.id
        assert inflow.amount == 1100

        ledger = client.get(f"/api/loans/{self.loan_id}/repayments", headers=self.lender_headers).json()
        assert len(ledger["repayments"]) == 1
        assert ledger["totalRepaid"] == 1100
        assert ledger["outstanding"] == 9900

    def test_repayment_cannot_exceed_what_is_owed(self, client, db, login_as):
        self.setup_loan(client, db, login_as)
        self.activate(client)

        response = self.repay(client, 20000)
        assert response.status_code == 400
        assert response.json()["error"] == "Repayment exceeds the outstanding amount of KSh 11,000.00"

    def test_full_repayment_completes_the_loan(self, client, db, login_as):
        self.setup_loan(client, db, login_as)
        self.activate(client)
        self.repay(client, 1100)

        body = self.repay(client, 9900, headers=self.lender_headers).json()
        assert body["loan"]["status"] == "completed"
        assert body["loan"]["outstanding_amount"] == 0

        credit = credit_of(db, self.borrower)
        assert credit.outstanding_balance == 0
        assert credit.total_repaid == 11000

        response = self.repay(client, 100)
        assert response.status_code == 400
        assert response.json()["error"] == "Repayments are not accepted on a completed loan"

    def test_no_repayment_before_disbursement(self, client, db, login_as):
        self.setup_loan(client, db, login_as)
        assert self.repay(client, 100).status_code == 400

    def test_default_raises_risk(self, client, db, login_as):
        self.setup_loan(client, db, login_as)
        self.activate(client)
        assert self.set_status(client, "defaulted").status_code == 200
        assert credit_of(db, self.borrower).risk_category == "high"

    def test_delivery_confirmation_starts_repayment(self, client, db, login_as):
        self.setup_loan(client, db, login_as)
        payload = {"confirmationType": "pin", "confirmationCode": "4821", "notes": "Delivered to the shop"}

        response = client.post(f"/api/loans/{self.loan_id}/delivery", json=payload, headers=self.headers)
        assert response.status_code == 400
        assert response.json()["error"] == "Goods can only be confirmed on a disbursed loan"

        self.activate(client)
        response = client.post(f"/api/loans/{self.loan_id}/delivery", json=payload, headers=self.headers)
        assert response.status_code == 201
        assert response.json()["status"] == "repaying"

        confirmations = client.get(f"/api/loans/{self.loan_id}/delivery", headers=self.lender_headers).json()
        assert [c["confirmation_code"] for c in confirmations["confirmations"]] == ["4821"]

    def test_escalation(self, client, db, login_as):
        self.setup_loan(client, db, login_as)
        payload = {"escalationType": "legal", "escalationReason": "14 days without payment"}

        assert client.post(f"/api/loans/{self.loan_id}/escalate", json=payload,
                           headers=self.lender_headers).status_code == 400

        self.activate(client)
        assert client.post(f"/api/loans/{self.loan_id}/escalate", json=payload,
                           headers=self.headers).status_code == 403

        response = client.post(f"/api/loans/{self.loan_id}/escalate", json=payload, headers=self.lender_headers)
        assert response.status_code == 201

        loan = client.get(f"/api/loans/{self.loan_id}", headers=self.headers).json()["loan"]
        assert loan["status"] == "recovery"
        assert credit_of(db, self.borrower).risk_category == "high"

        alert = db.query(models.Notification).filter(models.Notification.type == "risk").one()
        assert alert.priority == "high"
        assert alert.title == "Loan Escalated for Recovery"
        assert alert.amount == 11000

        escalations = client.get(f"/api/loans/{self.loan_id}/escalations", headers=self.lender_headers).json()
        assert escalations["escalations"][0]["escalation_type"] == "legal"

        # Money recovered still goes through the ledger
        assert self.repay(client, 1100).status_code == 201

    def test_statements(self, client, db, login_as):
        self.setup_loan(client, db, login_as)
        self.activate(client)
        self.repay(client, 1100)
        today = date.today().isoformat()

        response = client.post(f"/api/loans/{self.loan_id}/statement",
                               json={"startDate": today, "endDate": today}, headers=self.lender_headers)
        assert response.status_code == 201
        statement = response.json()["statement"]
        assert statement["totalPaid"] == 1100
        assert statement["outstandingBalance"] == 9900
        assert len(statement["payments"]) == 1

        statements = client.get(f"/api/loans/{self.loan_id}/statements", headers=self.headers).json()["statements"]
        assert [s["id"] for s in statements] == [response.json()["statementId"]]

        response = client.post(f"/api/loans/{self.loan_id}/statement",
                               json={"startDate": "2025-03-10", "endDate": "2025-03-01"}, headers=self.headers)
        assert response.status_code == 400


class TestLoanService:
    def test_loan_terms(self):
        assert loan_terms(10000, 0.01, 10) == {"total_amount": 11000, "daily_payment_amount": 1100}
        assert loan_terms(1000, 0, 3) == {"total_amount": 1000, "daily_payment_amount": 333.33}

    def test_statement_counts_missed_days(self, db, make_user):
        borrower = make_user("retailer")
        lender = make_user("lender")
        loan = models.Loan(
            retailer_id=borrower.id, lender_id=lender.id, principal_amount=1000, daily_interest_rate=0,
            loan_term_days=10, total_amount=1000, daily_payment_amount=100, total_repaid=300,
            status="repaying", disbursed_at=datetime(2025, 3, 1, 9), due_date=date(2025, 3, 11),
        )
        db.add(loan)
        db.flush()
        for day in (2, 3, 5):
            db.add(models.LoanRepayment(loan_id=loan.id, amount=100, payment_date=date(2025, 3, day),
                                        payment_method="mpesa"))
        db.commit()

        service = LoanService(db, today=date(2025, 3, 8))
        record = service.statement(loan, date(2025, 3, 1), date(2025, 3, 31))["record"]
        # Scheduled 2 to 8 March; 4, 6 and 7 March were missed, today is not yet due
        assert record.total_expected == 700
        assert record.total_paid == 300
        assert record.penalties_applied == 15
        assert record.outstanding_balance == 700

    def test_statement_of_undisbursed_loan(self, db, make_user):
        borrower = make_user("retailer")
        loan = models.Loan(retailer_id=borrower.id, principal_amount=1000, loan_term_days=10,
                           total_amount=1500, daily_payment_amount=150)
        db.add(loan)
        db.commit()

        record = LoanService(db).statement(loan, date(2025, 3, 1), date(2025, 3, 31))["record"]
        assert (record.total_expected, record.total_paid, record.penalties_applied) == (0, 0, 0)
        assert record.outstanding_balance == 1500


class TestCreditAdministration:
    def test_admin_sets_credit_limit(self, client, db, login_as, make_user):
        _, admin_headers = login_as("admin")
        borrower, headers = login_as("retailer")

        assert request_loan(client, headers).status_code == 400

        response = client.patch(f"/api/admin/users/{borrower.id}/credit",
                                json={"credit_limit": 20000, "risk_category": "medium"}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["data"]["credit_limit"] == 20000
        assert response.json()["data"]["credit_score"] == 500

        assert request_loan(client, headers).status_code == 201

    def test_credit_update_rejects_unknown_fields(self, client, login_as):
        _, admin_headers = login_as("admin")
        borrower, _ = login_as("retailer")
        response = client.patch(f"/api/admin/users/{borrower.id}/credit", json={"outstanding_balance": 0},
                                headers=admin_headers)
        assert response.status_code == 400

    def test_retailer_dashboard_counts_loans(self, client, db, login_as):
        borrower, headers = login_as("retailer")
        give_credit(db, borrower)
        request_loan(client, headers)

        data = client.get("/retailer", headers=headers).json()["data"]
        assert data["loans"] == {"total": 1, "open": 0, "repaid": 0.0}
