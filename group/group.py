"""
Modular Arithmetic Group for Election Cryptography
==================================================
Elements of the 4096-bit prime field (mod P) and of its 256-bit prime-order
subgroup (mod Q), plus the arithmetic the rest of the system is built on.
Exponentiation and inversion go through gmpy2.
"""

import logging
from dataclasses import dataclass
from secrets import randbelow
from typing import Optional, Union

from gmpy2 import invert, mpz, powmod

logger = logging.getLogger(__name__)

# ============================================================================
# CONSTANTS
# ============================================================================

# Q = 2^256 - 189, the order of the subgroup
Q = pow(2, 256) - 189

# 4096-bit prime with Q | P - 1
P = int("""
10443888814131525066917527107166243825799642490473837803842334832839539079715536
43537729993126875883902173634017777416360502926082946377942955704498542097614841
82524677358068939838632043974791116089773155107490396724388342713291881374801626
97545223435052858988167772117619123927729144855211555216410492734462075789619398
40619466145806859275053476560973295158703823395710210329314709715239251736552384
08084583604877866731893141833842244389102591188472343308470120777190194459328662
49799173913505646626327237030079642298491547561968906152522865330896431849027069
26081744149289517418249153634178342075381874131646013444796894582106870531535803
66625457960263245310374145256979390555190154185617325138504741484039275358558190
99501580462568105426783681212785099605209576247379429146003106466097926650128583
97381435755902851312071248102599442308951327039250818892493767423329663783709190
71616202352966921730093978317141580823314682300076691778928615400604228142373370
64629052437748545431272395002458735820126636664305838627781673695476030163442427
29592244544608279405999759391099775667746401633668308698186721172238255007962658
56444385892763485041577534883905202667578569482638693017530314345004657546084387
9941791946313299322976993405829119
""".replace('\n', ''))

# Cofactor, P - 1 = Q * R
R = ((P - 1) * pow(Q, -1, P)) % P

# Generator of the order-Q subgroup
G = int("""
14245109091294741386751154342323521003543059865261911603340669522218159898070093
32783859504517506789736330104776422964032793033300112340107059631446960318363379
04528074284167757179231829495838753818339123708898745721120869663004986073645017
64494811956017881198827400327403252039184448888877644781610594801053753235453382
50854390699357124838774942087460973745180365002178864124994053408146423293719367
19295867473393534510217127524062252762550102810048572330432413325278219116044135
82442915993833774890228705495787357234006932755876972632840760599399514028393542
34503543313515951109987777385762269974281622806310692777614786704033664902515277
10363612733293853549273958363302063110725776838926644750707204084472576356068919
20123791602538518516524873664205034698194561673019535564273204744076336022130453
96364811432105017399425962061101518949833596617344041196756217573460670625833509
59911408277639422800370631802071729187699217120034000079238880842966852692332983
71143630883011213745082207405479978418089917768242592557172834921185990876960527
01338669390996109330228964619329572513523859508203913348872180007145950335341757
42486797285779428636598020160042831931634708357094056669948924993828909122380984
13819320185166580019604608311466
""".replace('\n', ''))

Q_MINUS_ONE = Q - 1

_P_MPZ = mpz(P)
_Q_MPZ = mpz(Q)
_G_MPZ = mpz(G)

# ============================================================================
# EXCEPTIONS
# ============================================================================


class GroupError(Exception):
    """Base exception for group arithmetic"""
    pass


class ArithmeticDomainError(GroupError, ValueError):
    """Raised when an element is constructed outside of [0, modulus)"""
    pass


class DiscreteLogError(GroupError):
    """Raised when a discrete log cannot be recovered within the configured bound"""
    pass

# ============================================================================
# ELEMENTS
# ============================================================================


def _to_hex(value: int) -> str:
    h = format(value, "02X")
    if len(h) % 2:
        h = "0" + h
    return h


@dataclass(frozen=True)
class ElementModQ:
    """An element of the subgroup exponent space, i.e. in [0, Q)"""
    value: int

    def __post_init__(self):
        if not 0 <= self.value < Q:
            raise ArithmeticDomainError(
                f"ElementModQ value out of range [0, Q): {self.value}")

    def to_int(self) -> int:
        return self.value

    def to_hex(self) -> str:
        """Uppercase hex with an even number of digits"""
        return _to_hex(self.value)

    def to_bytes(self) -> bytes:
        return bytes.fromhex(self.to_hex())

    def is_in_bounds(self) -> bool:
        return 0 <= self.value < Q

    def is_in_bounds_no_zero(self) -> bool:
        return 0 < self.value < Q

    def __int__(self) -> int:
        return self.value

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class ElementModP:
    """An element of the large prime field, i.e. in [0, P)"""
    value: int

    def __post_init__(self):
        if not 0 <= self.value < P:
            raise ArithmeticDomainError(
                f"ElementModP value out of range [0, P)")

    def to_int(self) -> int:
        return self.value

    def to_hex(self) -> str:
        return _to_hex(self.value)

    def is_in_bounds(self) -> bool:
        return 0 <= self.value < P

    def is_in_bounds_no_zero(self) -> bool:
        return 0 < self.value < P

    def is_valid_residue(self) -> bool:
        """True when the element is in [1, P) and lies in the order-Q subgroup"""
        if not self.is_in_bounds_no_zero():
            return False
        return powmod(mpz(self.value), _Q_MPZ, _P_MPZ) == 1

    def __int__(self) -> int:
        return self.value

    def __str__(self) -> str:
        return str(self.value)


ElementModQorInt = Union[ElementModQ, int]
ElementModPorInt = Union[ElementModP, int]

ZERO_MOD_Q = ElementModQ(0)
ONE_MOD_Q = ElementModQ(1)
TWO_MOD_Q = ElementModQ(2)

ZERO_MOD_P = ElementModP(0)
ONE_MOD_P = ElementModP(1)
TWO_MOD_P = ElementModP(2)

G_MOD_P = ElementModP(G)


def _int(e: Union[ElementModQ, ElementModP, int]) -> int:
    return e if isinstance(e, int) else e.value

# ============================================================================
# CONVERSIONS
# ============================================================================


def int_to_q(value: int) -> Optional[ElementModQ]:
    """Return an ElementModQ, or None when the value is outside [0, Q)"""
    if 0 <= value < Q:
        return ElementModQ(value)
    return None


def int_to_q_unchecked(value: int) -> ElementModQ:
    """Reduce any integer into [0, Q)"""
    return ElementModQ(value % Q)


def int_to_p(value: int) -> Optional[ElementModP]:
    """Return an ElementModP, or None when the value is outside [0, P)"""
    if 0 <= value < P:
        return ElementModP(value)
    return None


def int_to_p_unchecked(value: int) -> ElementModP:
    return ElementModP(value % P)


def hex_to_q(value: str) -> Optional[ElementModQ]:
    try:
        return int_to_q(int(value, 16))
    except ValueError:
        logger.warning(f"Could not parse hex value for ElementModQ: {value!r}")
        return None

# ============================================================================
# ARITHMETIC MOD Q
# ============================================================================


def add_q(*elems: ElementModQorInt) -> ElementModQ:
    total = 0
    for e in elems:
        total = (total + _int(e)) % Q
    return ElementModQ(total)


def a_minus_b_q(a: ElementModQorInt, b: ElementModQorInt) -> ElementModQ:
    return ElementModQ((_int(a) - _int(b)) % Q)


def a_plus_bc_q(a: ElementModQorInt, b: ElementModQorInt, c: ElementModQorInt) -> ElementModQ:
    """Compute (a + b * c) mod Q"""
    return ElementModQ((_int(a) + _int(b) * _int(c)) % Q)


def negate_q(a: ElementModQorInt) -> ElementModQ:
    return ElementModQ((Q - _int(a)) % Q)


def mult_q(*elems: ElementModQorInt) -> ElementModQ:
    product = 1
    for e in elems:
        product = (product * _int(e)) % Q
    return ElementModQ(product)


def div_q(a: ElementModQorInt, b: ElementModQorInt) -> ElementModQ:
    """Compute a / b mod Q. Raises ZeroDivisionError when b is zero mod Q"""
    inverse = invert(mpz(_int(b)), _Q_MPZ)
    return ElementModQ(int((mpz(_int(a)) * inverse) % _Q_MPZ))


def pow_q(b: ElementModQorInt, e: ElementModQorInt) -> ElementModQ:
    return ElementModQ(int(powmod(mpz(_int(b)), mpz(_int(e)), _Q_MPZ)))

# ============================================================================
# ARITHMETIC MOD P
# ============================================================================


def mult_p(*elems: ElementModPorInt) -> ElementModP:
    product = mpz(1)
    for e in elems:
        product = (product * _int(e)) % _P_MPZ
    return ElementModP(int(product))


def mult_inv_p(e: ElementModPorInt) -> ElementModP:
    """Multiplicative inverse mod P. Raises ZeroDivisionError for zero"""
    return ElementModP(int(invert(mpz(_int(e)), _P_MPZ)))


def div_p(a: ElementModPorInt, b: ElementModPorInt) -> ElementModP:
    inverse = invert(mpz(_int(b)), _P_MPZ)
    return ElementModP(int((mpz(_int(a)) * inverse) % _P_MPZ))


def pow_p(b: ElementModPorInt, e: ElementModQorInt) -> ElementModP:
    """Compute b^e mod P. Negative exponents go through the inverse of b"""
    exponent = _int(e)
    base = mpz(_int(b)) % _P_MPZ
    if exponent < 0:
        base = invert(base, _P_MPZ)
        exponent = -exponent
    return ElementModP(int(powmod(base, mpz(exponent), _P_MPZ)))


def g_pow_p(e: ElementModQorInt) -> ElementModP:
    return ElementModP(int(powmod(_G_MPZ, mpz(_int(e)), _P_MPZ)))


# ============================================================================
# RANDOMNESS
# ============================================================================


def rand_q() -> ElementModQ:
    """Uniformly random element of [0, Q) from the OS CSPRNG"""
    return ElementModQ(randbelow(Q))


def rand_range_q(start: ElementModQorInt) -> ElementModQ:
    """Uniformly random element of [start, Q)"""
    lower = _int(start)
    if not 0 <= lower < Q:
        raise ArithmeticDomainError(f"rand_range_q start out of range: {lower}")
    return ElementModQ(lower + randbelow(Q - lower))
