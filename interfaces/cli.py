"""
Command-line interface for the fixed-point pricing engine.

This CLI provides access to:
- Option pricing and Greeks (Black-Scholes)
- Implied volatility solving
- Heston stochastic-volatility pricing
- American options on a binomial lattice
- The liquidity-sensitive volatility smile

All numeric inputs are decimal strings parsed exactly; --raw prints the
scaled integers instead of rounded decimals, for differential testing
against other implementations.
"""

import logging

import click

from fixedpricer.core.black_scholes import black_scholes_price, calculate_greeks
from fixedpricer.core.fixed_point import FixedPoint
from fixedpricer.core.heston import heston_implied_vol, heston_price
from fixedpricer.core.lattice import early_exercise_premium, price_lattice
from fixedpricer.core.volatility_surface import SurfaceConfig, build_smile
from fixedpricer.solvers.implied_vol import implied_volatility
from fixedpricer.utils.constants import DEFAULT_LATTICE_STEPS, HESTON_PANELS
from fixedpricer.utils.errors import PricingError
from fixedpricer.utils.types import HestonParameters, OptionParameters


class FixedPointType(click.ParamType):
    """Parse an option value as an exact fixed-point decimal."""

    name = "decimal"

    def convert(self, value, param, ctx):
        if isinstance(value, FixedPoint):
            return value
        try:
            return FixedPoint.from_string(value)
        except PricingError as e:
            self.fail(str(e), param, ctx)


DECIMAL = FixedPointType()
OPTION_TYPE = click.Choice(["call", "put"])


def _show(value: FixedPoint, digits: int = 4) -> str:
    if click.get_current_context().obj["raw"]:
        return str(value.raw)
    return f"{value:.{digits}f}"


def _contract_options(func):
    """Options shared by every contract-level command."""
    for option in reversed(
        [
            click.option("--spot", "-S", type=DECIMAL, required=True, help="Spot price"),
            click.option("--strike", "-K", type=DECIMAL, required=True, help="Strike price"),
            click.option("--time", "-T", type=DECIMAL, required=True, help="Time to expiry (years)"),
            click.option("--rate", "-r", type=DECIMAL, required=True, help="Risk-free rate"),
            click.option("--type", "-t", "option_type", type=OPTION_TYPE, default="call"),
        ]
    ):
        func = option(func)
    return func


@click.group()
@click.version_option(version="0.1.0")
@click.option("--raw", is_flag=True, help="Print scaled integers (value × 10^18)")
@click.option("--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, raw, verbose):
    """Fixed-point option pricing engine."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["raw"] = raw


@cli.command()
@_contract_options
@click.option("--vol", "-v", type=DECIMAL, required=True, help="Volatility (annualized)")
@click.option("--quality", type=click.Choice(["precise", "fast"]), default="precise", help="CDF approximation")
def price(spot, strike, time, rate, option_type, vol, quality):
    """Calculate option price using Black-Scholes."""
    try:
        params = OptionParameters(spot, strike, vol, rate, time)
        price_value = black_scholes_price(params, option_type, quality)
    except PricingError as e:
        raise click.ClickException(str(e))
    click.echo(f"{option_type.capitalize()} Option Price: {_show(price_value)}")


@cli.command()
@_contract_options
@click.option("--vol", "-v", type=DECIMAL, required=True, help="Volatility (annualized)")
def greeks(spot, strike, time, rate, option_type, vol):
    """Calculate price and all option Greeks."""
    try:
        values = calculate_greeks(OptionParameters(spot, strike, vol, rate, time), option_type)
    except PricingError as e:
        raise click.ClickException(str(e))

    click.echo(f"Greeks for {option_type.capitalize()} Option:")
    click.echo(f"  Price:  {_show(values.price, 6):>12}")
    click.echo(f"  Delta:  {_show(values.delta, 6):>12}")
    click.echo(f"  Gamma:  {_show(values.gamma, 6):>12}")
    click.echo(f"  Vega:   {_show(values.vega, 6):>12}")
    click.echo(f"  Theta:  {_show(values.theta, 6):>12} (per year)")
    click.echo(f"  Rho:    {_show(values.rho, 6):>12}")


@cli.command()
@click.option("--market-price", "-p", type=DECIMAL, required=True, help="Market price")
@_contract_options
@click.option("--method", type=click.Choice(["auto", "newton", "bisection"]), default="auto")
def iv(market_price, spot, strike, time, rate, option_type, method):
    """Solve for implied volatility."""
    try:
        result = implied_volatility(market_price, spot, strike, time, rate, option_type, method)
    except PricingError as e:
        raise click.ClickException(str(e))

    if not result.success:
        raise click.ClickException(f"Solver failed: {result.message}")
    click.echo(f"Implied Volatility: {_show(result.volatility, 6)}")
    click.echo(f"Method: {result.method}")
    click.echo(f"Iterations: {result.iterations}")


@cli.command()
@_contract_options
@click.option("--v0", type=DECIMAL, required=True, help="Initial variance")
@click.option("--theta", type=DECIMAL, required=True, help="Long-run variance")
@click.option("--kappa", type=DECIMAL, required=True, help="Mean-reversion speed")
@click.option("--xi", type=DECIMAL, required=True, help="Volatility of variance")
@click.option("--rho", type=DECIMAL, required=True, help="Spot/variance correlation")
@click.option("--panels", type=int, default=HESTON_PANELS, show_default=True, help="Quadrature panels")
@click.option("--implied", is_flag=True, help="Also solve for the Black-Scholes equivalent volatility")
def heston(spot, strike, time, rate, option_type, v0, theta, kappa, xi, rho, panels, implied):
    """Price a European option under Heston dynamics."""
    try:
        params = HestonParameters(spot, strike, rate, time, v0, theta, kappa, xi, rho)
        price_value = heston_price(params, option_type, panels)
        result = heston_implied_vol(params, option_type, panels=panels) if implied else None
    except PricingError as e:
        raise click.ClickException(str(e))

    click.echo(f"Heston {option_type.capitalize()} Price: {_show(price_value)}")
    click.echo(f"Feller ratio: {_show(params.feller_ratio)}")
    if result is not None:
        status = "" if result.success else f" (not converged: {result.message})"
        click.echo(f"Implied Volatility: {_show(result.volatility, 6)}{status}")


@cli.command()
@_contract_options
@click.option("--vol", "-v", type=DECIMAL, required=True, help="Volatility (annualized)")
@click.option("--steps", "-n", type=int, default=DEFAULT_LATTICE_STEPS, show_default=True)
def american(spot, strike, time, rate, option_type, vol, steps):
    """Price an American option on a CRR binomial lattice."""
    try:
        params = OptionParameters(spot, strike, vol, rate, time)
        result = price_lattice(params, steps, option_type, american=True)
        premium = early_exercise_premium(params, steps, option_type)
    except PricingError as e:
        raise click.ClickException(str(e))

    click.echo(f"American {option_type.capitalize()} Price: {_show(result.price)}")
    click.echo(f"Early Exercise Premium: {_show(premium)}")
    click.echo(f"Delta: {_show(result.delta, 6)}")
    click.echo(f"Steps: {result.steps}")


@cli.command()
@click.option("--realized-vol", type=DECIMAL, required=True, help="Annualized realized volatility")
@click.option("--spot", "-S", type=DECIMAL, required=True, help="Spot price")
@click.option("--strike", "-K", "strikes", type=DECIMAL, multiple=True, required=True, help="Strike (repeatable)")
@click.option("--time", "-T", type=DECIMAL, required=True, help="Time to expiry (years)")
@click.option("--utilization", "-u", type=DECIMAL, required=True, help="Pool utilization in [0, 1)")
@click.option("--alpha", type=DECIMAL, default=None, help="Smile curvature")
@click.option("--beta", type=DECIMAL, default=None, help="Skew tilt")
@click.option("--gamma", type=DECIMAL, default=None, help="Utilization premium scale")
def surface(realized_vol, spot, strikes, time, utilization, alpha, beta, gamma):
    """Quote the volatility smile across strikes."""
    overrides = {
        name: value
        for name, value in (("alpha", alpha), ("beta", beta), ("gamma", gamma))
        if value is not None
    }
    try:
        points = build_smile(realized_vol, strikes, spot, time, utilization, SurfaceConfig(**overrides))
    except PricingError as e:
        raise click.ClickException(str(e))

    click.echo(f"{'Strike':>12} {'Moneyness':>12} {'Implied Vol':>14}")
    for point in points:
        click.echo(
            f"{_show(point.strike, 2):>12} {_show(point.moneyness):>12} "
            f"{_show(point.implied_volatility):>14}"
        )


if __name__ == "__main__":
    cli()
