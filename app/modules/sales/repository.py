# app/modules/sales/repository.py
from typing import Callable, List, Optional
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import update, or_

from app.shared.database.models import Product, Sale, SaleDetail
from .errors import StockConflict, CommitCancelled
from .schemas import SaleHeaderData, SaleLineData

class ProductCatalog:
    """
    Consulta de solo lectura del catálogo por código de barras
    """

    def __init__(self, db: Session):
        self.db = db

    def get_by_barcode(self, barcode: str) -> Optional[Product]:
        """
        Obtener producto por código de barras
        """
        # populate_existing: releer el stock actual, no el cacheado en la sesión
        return self.db.query(Product).populate_existing().filter(
            Product.barcode == barcode
        ).first()

    def search(self, term: str, limit: int = 20) -> List[Product]:
        """
        Buscar productos por código o nombre
        """
        return self.db.query(Product).filter(
            or_(
                Product.barcode.ilike(f'%{term}%'),
                Product.product_name.ilike(f'%{term}%')
            )
        ).order_by(Product.product_name).limit(limit).all()

class SaleRepository:
    """
    Única puerta de escritura de ventas. ``commit_sale`` es una unidad de
    trabajo atómica: decrementos de stock, cabecera y líneas se confirman
    juntos o no se confirma nada.
    """

    def __init__(self, db: Session):
        self.db = db

    # ==================== ESCRITURA ATÓMICA ====================

    def commit_sale(
        self,
        header: SaleHeaderData,
        lines: List[SaleLineData],
        should_abort: Callable[[], bool] = lambda: False
    ) -> Sale:
        """
        Registrar la venta completa en una sola transacción.

        Lanza StockConflict si algún decremento condicional no afecta filas,
        CommitCancelled si ``should_abort`` se activa antes del commit, o la
        excepción de SQLAlchemy correspondiente. En todos los casos se hace
        rollback antes de propagar.
        """
        try:
            for line in lines:
                self._check_abort(should_abort)
                self._decrement_stock(line.sku, line.quantity)

            self._check_abort(should_abort)
            sale = self._insert_sale_header(header)

            for line in lines:
                self._insert_sale_line(sale.id, line)

            self._check_abort(should_abort)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(sale)
        return sale

    def _check_abort(self, should_abort: Callable[[], bool]):
        if should_abort():
            raise CommitCancelled("Escritura de la venta abortada")

    def _decrement_stock(self, barcode: str, quantity: int):
        """
        Decremento condicional evaluado por la base de datos: solo aplica si
        hay stock suficiente. Nunca leer-y-luego-escribir.
        """
        result = self.db.execute(
            update(Product)
            .where(Product.barcode == barcode, Product.quantity >= quantity)
            .values(quantity=Product.quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise StockConflict(barcode)

    def _insert_sale_header(self, header: SaleHeaderData) -> Sale:
        sale = Sale(
            exchange_rate_id=header.exchange_rate_id,
            customer_id=header.customer_id,
            employee_id=header.employee_id,
            sale_date=header.sale_date,
            subtotal=header.subtotal,
            pay=header.pay,
            change=header.change,
            checkout_token=header.checkout_token
        )
        self.db.add(sale)
        self.db.flush()  # Obtener ID sin hacer commit aún
        return sale

    def _insert_sale_line(self, sale_id: int, line: SaleLineData) -> SaleDetail:
        detail = SaleDetail(
            sale_id=sale_id,
            product_id=line.sku,
            quantity=line.quantity,
            price=line.unit_price,
            total=line.line_total
        )
        self.db.add(detail)
        self.db.flush()
        return detail

    # ==================== CONSULTAS ====================

    def get_sale_by_id(self, sale_id: int) -> Optional[Sale]:
        """
        Obtener venta con sus líneas
        """
        return self.db.query(Sale).options(
            joinedload(Sale.items)
        ).filter(Sale.id == sale_id).first()

    def find_by_checkout_token(self, checkout_token: str) -> Optional[Sale]:
        """
        Buscar si ya existe una venta para el token de una sesión de cobro
        """
        return self.db.query(Sale).options(
            joinedload(Sale.items)
        ).filter(Sale.checkout_token == checkout_token).first()
