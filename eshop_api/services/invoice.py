"""
Retail invoice HTML for an order
"""
from html import escape
from typing import List

from eshop_api.config import settings
from eshop_api.utils.php import php_date, to_float, to_int

DEFAULT_APP_NAME = "Uzvis,Vijayawada-520010"
DEFAULT_SUPPORT_NUMBER = "9120042009"
DEFAULT_SUPPORT_EMAIL = "support@uzvis.com"


def indian_format(value) -> str:
    """Group digits the way ``toLocaleString('en-IN')`` does: 12,34,567.5"""
    amount = round(to_float(value), 3)
    sign = "-" if amount < 0 else ""
    whole, _, fraction = f"{abs(amount):.3f}".partition(".")
    fraction = fraction.rstrip("0")
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])
    return f"{sign}{whole}.{fraction}" if fraction else f"{sign}{whole}"


def _item_rows(items: List[dict]) -> str:
    rows = []
    for index, item in enumerate(items, start=1):
        tax = to_float(item.get("tax_percentage"))
        tax_label = f"{tax:g}({tax:g}%)" if tax > 0 else "0(0%)"
        tax_amount = to_float(item.get("tax_amount"))
        rows.append(f"""
            <tr>
                <td>{index}</td>
                <td>{item.get("product_variant_id")}</td>
                <td class="w-25">{escape(str(item.get("product_name") or item.get("name") or ""))}</td>
                <td>{indian_format(item.get("price"))}</td>
                <td>{tax_label}</td>
                <td>{item.get("quantity")}</td>
                <td class="d-none">{indian_format(tax_amount) if tax_amount > 0 else "0"}</td>
                <td>{indian_format(item.get("sub_total"))}</td>
            </tr>""")
    return "".join(rows)


def generate_invoice_html(order: dict, items: List[dict], system_settings: dict) -> str:
    """Printable invoice; ``order`` carries the customer's username, email and mobile"""
    if not order or not items:
        return ""
    app_name = escape(system_settings.get("app_name") or DEFAULT_APP_NAME)
    support_number = escape(system_settings.get("support_number") or DEFAULT_SUPPORT_NUMBER)
    support_email = escape(system_settings.get("support_email") or DEFAULT_SUPPORT_EMAIL)
    tax_line = ""
    if system_settings.get("tax_name"):
        tax_line = f"<b>{escape(system_settings['tax_name'])}</b> : {escape(str(system_settings.get('tax_number', '')))}<br>"

    total_qty = sum(to_int(item.get("quantity")) for item in items)
    tax_amount = sum(to_float(item.get("tax_amount")) for item in items)
    logo = settings.no_image_url

    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <title>Invoice Management |{app_name}</title>
    <link rel="icon" href="{logo}" type="image/gif" sizes="16x16">
</head>
<body class="hold-transition sidebar-mini layout-fixed">
<section class="content">
<div class="card card-info" id="section-to-print">
    <div class="row m-3">
        <div class="col-md-12 d-flex justify-content-between">
            <h2 class="text-left"><img src="{logo}" style="max-width:250px;max-height:100px;"></h2>
            <h2 class="text-right">Mo. {support_number}</h2>
        </div>
    </div>
    <div class="row m-3 d-flex justify-content-between">
        <div class="col-sm-4 invoice-col">From <address>
            <strong>{app_name}</strong><br>
            Email: {support_email}<br>
            Customer Care : {support_number}<br>
            {tax_line}
        </address></div>
        <div class="col-sm-4 invoice-col">To <address>
            <strong>{escape(str(order.get("username") or ""))}</strong><br>
            {escape(str(order.get("address") or ""))}<br>
            <strong>{escape(str(order.get("mobile") or ""))}</strong><br>
            <strong>{escape(str(order.get("email") or ""))}</strong><br>
        </address></div>
        <div class="col-sm-2 invoice-col">
            <br> <b>Retail Invoice</b>
            <br> <b>No : </b>#{order.get("id")}
            <br> <b>Date: </b>{php_date(order.get("date_added"))}
        </div>
    </div>
    <div class="row m-3">
        <table class="table borderless text-center text-sm">
            <thead>
                <tr>
                    <th>Sr No.</th><th>Product Code</th><th>Name</th><th>Price</th>
                    <th>Tax (%)</th><th>Qty</th><th class="d-none">Tax Amount ()</th><th>SubTotal ()</th>
                </tr>
            </thead>
            <tbody>{_item_rows(items)}
            </tbody>
            <tbody>
                <tr>
                    <th></th><th></th><th></th><th></th><th>Total</th>
                    <th>{total_qty}</th>
                    <th>{indian_format(order.get("final_total"))}</th>
                </tr>
            </tbody>
        </table>
    </div>
    <div class="row m-2 text-right">
        <table class="table table-borderless">
            <tbody>
                <tr><th>Total Order Price</th><td>+ {indian_format(order.get("total"))}</td></tr>
                <tr><th>Delivery Charge</th><td>+ {indian_format(order.get("delivery_charge"))}</td></tr>
                <tr class="d-none"><th>Tax</th><td>+ {indian_format(tax_amount)}</td></tr>
                <tr><th>Wallet Used</th><td>- {indian_format(order.get("wallet_balance"))}</td></tr>
                <tr><th>Final Total</th><td>{indian_format(order.get("final_total"))}</td></tr>
            </tbody>
        </table>
    </div>
</div>
</section>
</body>
</html>"""
