"""
End-to-end multi-signature scenario
Issuer, distributor, customer and two signers walk through asset issuance,
multi-signature payments under changing thresholds and trust line removal
"""
import argparse
import logging
import sys
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

from asset_registry import AssetRegistry
from authorization import AuthorizationHarness
from balance_reporter import BalanceReporter
from harness_config import ConfigError, HarnessConfig, load_config
from ledger_client_mock import get_faucet, get_ledger_client
from ledger_models import AccountSnapshot, Asset, KeyPair, Opts, PaymentAttempt
from outcomes import Expect, HarnessError
from provisioning import AccountProvisioner
from reporting import LoggingReporter, Reporter
from trustlines import TrustLineManager

logger = logging.getLogger(__name__)


class VerificationError(HarnessError):
    """Ledger state after a phase is not what the scenario expects"""
    pass


@dataclass
class Participants:
    issuer: KeyPair
    distributor: KeyPair
    customer: KeyPair
    signer1: KeyPair
    signer2: KeyPair

    def addresses(self) -> Dict[str, str]:
        return {
            "issuer": self.issuer.address,
            "distributor": self.distributor.address,
            "customer": self.customer.address,
            "signer1": self.signer1.address,
            "signer2": self.signer2.address,
        }


class EndToEndScenario:
    """Runs the full scenario; the first unexpected outcome aborts the run"""

    def __init__(self, client: Any, faucet: Any, config: HarnessConfig,
                 reporter: Optional[Reporter] = None):
        self.client = client
        self.config = config
        self.reporter = reporter or LoggingReporter()
        self.provisioner = AccountProvisioner(
            client, faucet, self.reporter,
            bootstrap_amount=config.bootstrap_amount,
            payback_fraction=config.payback_fraction,
        )
        self.assets = AssetRegistry()
        self.trustlines = TrustLineManager(client, self.reporter)
        self.harness = AuthorizationHarness(
            client, self.reporter,
            reject_unused_signatures=config.rejects_unused_signatures,
        )
        self.balances = BalanceReporter(client, self.reporter)
        self.received = Decimal("0")

    def run(self) -> Dict[str, AccountSnapshot]:
        """Run every phase and return the final snapshots keyed by role"""
        people = self.provision_participants()
        usd = self.assets.define(self.config.asset_code, people.issuer.address)

        self.issue_asset(people, usd)
        self.configure_multisig(people)
        self.check_payment_authorization(people, usd)
        self.round_trip(people, usd)

        return self.balances.report_all(people.addresses(), usd)

    def provision_participants(self) -> Participants:
        fund_source = self.config.fund_source_seed
        if not fund_source:
            logger.info("No funding source configured, creating one with the faucet")
            fund_source = self.provisioner.provision(None, use_faucet=True).seed

        issuer = self.provisioner.provision(fund_source, use_faucet=True)
        distributor, customer, signer1, signer2 = self.provisioner.provision_many(issuer.seed, 4)
        people = Participants(issuer, distributor, customer, signer1, signer2)
        for role, address in people.addresses().items():
            logger.info(f"{role}: {address}")
        return people

    def issue_asset(self, people: Participants, usd: Asset):
        """Distributor trusts the asset and receives the issued amount"""
        self.trustlines.establish(people.distributor.seed, usd, self.config.distributor_limit)
        self.harness.attempt_payment(
            f"Issuing {usd.code} from issuer to distributor",
            PaymentAttempt(people.issuer.seed, people.distributor.address,
                           self.config.issue_amount, usd),
            Expect.ADMIT,
        )
        snapshot = self.balances.report(people.distributor.address, usd, "distributor")
        self._verify(snapshot.balance(usd) == self.config.issue_amount,
                     f"distributor holds {snapshot.balance(usd)} {usd.code}, "
                     f"expected {self.config.issue_amount}")

        self.trustlines.establish(people.customer.seed, usd, self.config.customer_limit)

    def configure_multisig(self, people: Participants):
        """Two signers of weight 1 on the distributor, then kill its master key"""
        self.harness.add_signer(people.distributor.seed, people.signer1.address, 1)
        self.harness.add_signer(people.distributor.seed, people.signer2.address, 1)
        self.harness.set_master_weight(people.distributor.seed, 0)

        snapshot = self.balances.report(people.distributor.address, label="distributor")
        self._verify(snapshot.master_weight == 0, "distributor master key still active")
        signers = snapshot.signer_set
        self._verify(signers.weight_of(people.signer1.address) == 1
                     and signers.weight_of(people.signer2.address) == 1,
                     "distributor signers not configured")

    def check_payment_authorization(self, people: Participants, usd: Asset):
        distributor = people.distributor
        customer = people.customer.address

        self._pay("Paying from distributor to customer (with dead master signer)",
                  PaymentAttempt(distributor.seed, customer, self.config.payment_amount, usd,
                                 memo_text="failed payment"),
                  Expect.REJECT)

        self._pay("Paying from distributor to customer (signed by a non-signer)",
                  PaymentAttempt(distributor.address, customer, self.config.payment_amount, usd,
                                 memo_text="failed payment",
                                 signing_keys=[people.customer.seed]),
                  Expect.REJECT)

        # Both signers at default thresholds: the live network refuses the
        # signature that is not needed to reach the threshold
        too_many = Expect.REJECT if self.config.rejects_unused_signatures else Expect.ADMIT
        self._pay("Paying from distributor to customer (with too many signers)",
                  PaymentAttempt(distributor.address, customer, self.config.payment_amount, usd,
                                 memo_text="real payment",
                                 signing_keys=[people.signer1.seed, people.signer2.seed]),
                  too_many)

        self._pay("Paying from distributor to customer (with correct signers)",
                  PaymentAttempt(distributor.address, customer, self.config.payment_amount, usd,
                                 memo_text="real payment",
                                 signing_keys=[people.signer2.seed]),
                  Expect.ADMIT)

        self.reporter.step("Require a total signing weight of 2 on distributor")
        self.harness.set_thresholds(distributor.address, 2, 2, 2,
                                    Opts().with_signer(people.signer1.seed))

        self._pay("Paying from distributor to customer (single signer after raising thresholds)",
                  PaymentAttempt(distributor.address, customer, self.config.payment_amount, usd,
                                 memo_text="failed payment",
                                 signing_keys=[people.signer2.seed]),
                  Expect.REJECT)

        self._pay("Paying from distributor to customer (with additional signer)",
                  PaymentAttempt(distributor.address, customer, self.config.payment_amount, usd,
                                 memo_text="real payment",
                                 signing_keys=[people.signer1.seed, people.signer2.seed]),
                  Expect.ADMIT)

        snapshot = self.balances.report(customer, usd, "customer")
        self._verify(snapshot.balance(usd) == self.received,
                     f"customer holds {snapshot.balance(usd)} {usd.code}, expected {self.received}")

    def round_trip(self, people: Participants, usd: Asset):
        """Customer returns everything it received, then drops its trust line"""
        self.trustlines.drain(people.customer.seed, usd, people.distributor.address)
        self.trustlines.remove(people.customer.seed, usd)

        snapshot = self.balances.report(people.customer.address, usd, "customer")
        self._verify(not snapshot.has_trust_line(usd), "customer trust line still present")

    def _pay(self, name: str, attempt: PaymentAttempt, expect: Expect):
        result = self.harness.attempt_payment(name, attempt, expect)
        if result.admitted:
            self.received += Decimal(str(attempt.amount))

    def _verify(self, condition: bool, message: str):
        if not condition:
            logger.error(f"Verification failed: {message}")
            raise VerificationError(message)


def run_scenario(config: HarnessConfig, reporter: Optional[Reporter] = None) -> Dict[str, AccountSnapshot]:
    """Build the ledger client and faucet for a configuration and run the scenario"""
    client = get_ledger_client(
        network=config.network,
        horizon_url=config.horizon_url,
        base_fee=config.base_fee,
        tx_timeout=config.tx_timeout,
        use_mock=config.use_mock,
        reject_unused_signatures=config.rejects_unused_signatures,
    )
    faucet = get_faucet(client, config.friendbot_url)
    with client:
        return EndToEndScenario(client, faucet, config, reporter).run()


def main(argv=None):
    """Main entry point"""
    parser = argparse.ArgumentParser(description="End-to-end multi-signature ledger harness")
    parser.add_argument("config", nargs="?", help="YAML configuration file")
    parser.add_argument("--mock", action="store_true", help="Run against the in-memory mock ledger")
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logging.basicConfig(level=logging.INFO)
        logger.error(f"Failed to load configuration: {e}")
        sys.exit(1)
    if args.mock:
        config.use_mock = True

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    logger.info(f"Starting ledger harness on {'mock ledger' if config.use_mock else config.network}")
    try:
        run_scenario(config)
    except HarnessError as e:
        logger.error(f"Harness failed: {e}")
        sys.exit(1)
    logger.info("All authorization checks passed")


if __name__ == "__main__":
    main()
