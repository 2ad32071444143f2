"""
Donation Reconciler - links donations to collection routes and credits them
into the stock ledger when the route completes.

Reconciliation is all-or-nothing per donation, never per route: a donation that
cannot be credited is recorded as a ReconciliationError and skipped, and the
route completes anyway.
"""

from datetime import date
from functools import partial
from typing import Any, Optional

from src.core.errors import (
    InvalidArgumentError,
    InvalidStateError,
    LogisticsError,
    NotFoundError,
    TypeMismatchError,
)
from src.core.locking import donation_key, route_key
from src.data.models import Donation, ReconciliationError, Route, RouteType
from src.data.repositories import DonationRepository, ProductCatalog, RouteRepository
from src.logistics.base import BaseService
from src.logistics.stock_ledger import StockLedger


class DonationReconciler(BaseService):
    """
    Donation Reconciler for collection routes.

    Donations move from pending to collected only through reconcile(), which the
    route scheduler calls while holding the route lock.
    """

    def __init__(
        self,
        donations: DonationRepository,
        routes: RouteRepository,
        ledger: StockLedger,
        products: ProductCatalog,
        **kwargs: Any,
    ) -> None:
        """
        Initialize the reconciler.

        Args:
            donations: Donation persistence
            routes: Route persistence (for link validation)
            ledger: Stock ledger credited on reconciliation
            products: Product catalog used to validate donation products
            **kwargs: settings / locks / logger forwarded to BaseService
        """
        super().__init__(service_name="donation_reconciler", **kwargs)
        self.donations = donations
        self.routes = routes
        self.ledger = ledger
        self.products = products

    # ------------------------------------------------------------------ pledges

    def register_donation(
        self,
        product_id: int,
        quantity: int,
        donor_user_id: Optional[int] = None,
        donation_date: Optional[date] = None,
    ) -> Donation:
        """Record a pledged donation; it starts pending and unlinked."""
        if quantity is None or quantity <= 0:
            raise InvalidArgumentError(f"Donation quantity must be positive, got {quantity}", quantity=quantity)
        if not self._call_external("product_catalog", self.products.product_exists, product_id):
            raise NotFoundError("Product", product_id)

        donation = self.donations.create_donation(
            product_id=product_id,
            quantity=quantity,
            donor_user_id=donor_user_id,
            donation_date=donation_date or date.today(),
        )
        self.logger.info(
            "donation_registered",
            donation_id=donation.donation_id,
            product_id=product_id,
            quantity=quantity,
            donor_user_id=donor_user_id,
        )
        return donation

    def get_donation(self, donation_id: int) -> Donation:
        donation = self.donations.get_donation(donation_id)
        if donation is None:
            raise NotFoundError("Donation", donation_id)
        return donation

    def list_pending(self, unlinked_only: bool = False) -> list[Donation]:
        """Donations not yet collected, optionally only those without a route."""
        return [
            d
            for d in self.donations.list_donations()
            if not d.collected and (not unlinked_only or d.route_id is None)
        ]

    def list_for_route(self, route_id: int) -> list[Donation]:
        return self.donations.list_for_route(route_id)

    def list_by_donor(self, donor_user_id: int) -> list[Donation]:
        return [d for d in self.donations.list_donations() if d.donor_user_id == donor_user_id]

    def list_by_product(self, product_id: int) -> list[Donation]:
        return [d for d in self.donations.list_donations() if d.product_id == product_id]

    # ------------------------------------------------------------------ linking

    def link_donation(self, donation_id: int, route_id: int) -> Donation:
        """
        Attach a pending donation to a collection route.

        Raises:
            NotFoundError: Unknown donation or route
            TypeMismatchError: The route is not a collection route
            InvalidStateError: The route is finished, or the donation is already linked or collected
        """

        def _link() -> Donation:
            route = self._route(route_id)
            if route.route_type != RouteType.COLLECT:
                raise TypeMismatchError(
                    f"Route {route_id} is a {route.route_type.value} route; donations need a collect route",
                    route_id=route_id,
                )
            if route.status.is_terminal:
                raise InvalidStateError(
                    f"Route {route_id} is {route.status.value}", route_id=route_id, status=route.status.value
                )

            donation = self.get_donation(donation_id)
            if donation.collected or donation.route_id is not None:
                raise InvalidStateError(
                    f"Donation {donation_id} is already {'collected' if donation.collected else 'linked'}",
                    donation_id=donation_id,
                    route_id=donation.route_id,
                )

            donation = donation.model_copy(update={"route_id": route_id})
            self.donations.save_donation(donation)
            self.logger.info("donation_linked", donation_id=donation_id, route_id=route_id)
            return donation

        return self._locked("link_donation", [route_key(route_id), donation_key(donation_id)], _link)

    def unlink_donation(self, donation_id: int) -> Donation:
        """Detach a pending donation from its route; no-op if it is not linked."""
        donation = self.get_donation(donation_id)
        if donation.route_id is None:
            return donation

        def _unlink() -> Donation:
            current = self.get_donation(donation_id)
            if current.collected:
                raise InvalidStateError(f"Donation {donation_id} is already collected", donation_id=donation_id)
            if current.route_id is None:
                return current
            current = current.model_copy(update={"route_id": None})
            self.donations.save_donation(current)
            self.logger.info("donation_unlinked", donation_id=donation_id, route_id=donation.route_id)
            return current

        return self._locked("unlink_donation", [route_key(donation.route_id), donation_key(donation_id)], _unlink)

    def release_route(self, route_id: int) -> list[Donation]:
        """Return every pending donation of a cancelled route to unlinked."""
        released = []
        for donation in self.list_for_route(route_id):
            if donation.collected:
                continue
            released.append(self.unlink_donation(donation.donation_id))
        return released

    # ---------------------------------------------------------- reconciliation

    def reconcile(self, route: Route, completed_on: date) -> tuple[list[int], list[ReconciliationError]]:
        """
        Credit every donation linked to a completed collection route.

        Args:
            route: The route being completed
            completed_on: Completion date stamped on collected donations

        Returns:
            (ids of donations collected, errors for donations that were skipped)
        """
        reconciled: list[int] = []
        errors: list[ReconciliationError] = []

        for donation in self.list_for_route(route.route_id):
            if donation.collected:
                continue
            try:
                self._locked(
                    "reconcile_donation",
                    [donation_key(donation.donation_id)],
                    partial(self._collect, donation.donation_id, completed_on),
                )
                reconciled.append(donation.donation_id)
            except LogisticsError as e:
                self.logger.warning(
                    "donation_reconciliation_failed",
                    route_id=route.route_id,
                    donation_id=donation.donation_id,
                    code=e.code.value,
                    error=e.message,
                )
                errors.append(ReconciliationError(donation_id=donation.donation_id, code=e.code, message=e.message))

        self.donations.save_reconciliation_errors(route.route_id, errors)
        self.logger.info(
            "route_reconciled",
            route_id=route.route_id,
            reconciled=len(reconciled),
            failed=len(errors),
        )
        return reconciled, errors

    def reconciliation_errors(self, route_id: int) -> list[ReconciliationError]:
        """Errors recorded when the given collection route completed."""
        return self.donations.get_reconciliation_errors(route_id)

    def _collect(self, donation_id: int, completed_on: date) -> Donation:
        donation = self.get_donation(donation_id)
        if donation.collected:
            return donation
        if donation.quantity <= 0:
            raise InvalidArgumentError(
                f"Donation {donation_id} has non-positive quantity {donation.quantity}", donation_id=donation_id
            )
        if not self._call_external("product_catalog", self.products.product_exists, donation.product_id):
            raise NotFoundError("Product", donation.product_id)

        self.ledger.credit(donation.product_id, self.settings.intake_zone, donation.quantity)
        donation = donation.model_copy(update={"collected": True, "collection_date": completed_on})
        self.donations.save_donation(donation)
        self.logger.info(
            "donation_collected",
            donation_id=donation_id,
            product_id=donation.product_id,
            quantity=donation.quantity,
            zone=self.settings.intake_zone,
        )
        return donation

    def _route(self, route_id: int) -> Route:
        route = self.routes.get_route(route_id)
        if route is None:
            raise NotFoundError("Route", route_id)
        return route
